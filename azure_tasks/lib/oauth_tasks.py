"""OAuth access token task.

Token acquisition is delegated to azure-identity's client-credential flow.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple
from urllib.parse import urlparse

from azure.core.exceptions import AzureError
from azure.identity import ClientSecretCredential

from azure_tasks.lib.cancellation import CancellationToken, check_cancelled
from azure_tasks.lib.definitions import OAuthProperties
from azure_tasks.lib.errors import InvalidOptionError, TokenAcquisitionError

logger = logging.getLogger(__name__)

__all__ = ["get_access_token", "parse_authority", "resource_scope"]


def parse_authority(auth_context_url: str) -> Tuple[str, str]:
    """Split an authority URL into (host, tenant).

    Example:
        >>> parse_authority("https://login.microsoftonline.com/contoso.onmicrosoft.com")
        ('login.microsoftonline.com', 'contoso.onmicrosoft.com')
    """
    parsed = urlparse(auth_context_url.strip())
    segments = [s for s in parsed.path.split("/") if s]
    if parsed.scheme != "https" or not parsed.netloc or not segments:
        raise InvalidOptionError(
            "auth_context_url must look like https://<authority-host>/<tenant>",
            option="auth_context_url",
            value=auth_context_url,
        )
    return parsed.netloc, segments[0]


def resource_scope(resource: str) -> str:
    """Turn a v1 resource identifier into a v2 ``/.default`` scope."""
    resource = resource.strip()
    if resource.endswith("/.default"):
        return resource
    return f"{resource.rstrip('/')}/.default"


def get_access_token(
    properties: OAuthProperties,
    cancellation: Optional[CancellationToken] = None,
) -> str:
    """Get a JWT access token for ``properties.resource`` using client credentials.

    Raises:
        InvalidOptionError: The authority URL cannot be parsed
        TokenAcquisitionError: The identity provider refused or returned no token
    """
    check_cancelled(cancellation, "acquiring token")
    authority, tenant = parse_authority(properties.auth_context_url)
    scope = resource_scope(properties.resource)

    try:
        credential = ClientSecretCredential(
            tenant_id=tenant,
            client_id=properties.client_id,
            client_secret=properties.client_secret,
            authority=authority,
        )
        try:
            access_token = credential.get_token(scope)
        finally:
            credential.close()
    except (AzureError, ValueError) as e:
        raise TokenAcquisitionError(
            "Failed to obtain the JWT token",
            authority=properties.auth_context_url,
            resource=properties.resource,
            cause=e,
        ) from e

    if access_token is None or not access_token.token:
        raise TokenAcquisitionError(
            "Failed to obtain the JWT token",
            authority=properties.auth_context_url,
            resource=properties.resource,
        )

    logger.info("Acquired access token for %s (tenant %s)", properties.resource, tenant)
    return access_token.token
