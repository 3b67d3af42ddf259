"""Azure Storage tasks.

Thin tasks over the Azure Storage SDK: list, upload, download and delete
blobs, manage queues and fetch OAuth access tokens.

Usage:
    python -m azure_tasks upload_file --config upload.yaml
    python -m azure_tasks --list
"""

__version__ = "1.0.0"
