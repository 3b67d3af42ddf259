"""Azure storage tasks test suite.

- test_materializer.py: upload streams, rename probing, collision policies
- test_blob_tasks.py / test_queue_tasks.py / test_oauth_tasks.py: tasks against mocked SDK clients
- test_task_lib.py: errors, logging, env expansion, retry, settings, cancellation
- test_cli.py: the ``python -m azure_tasks`` runner
"""
