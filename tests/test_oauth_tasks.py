"""Tests for the OAuth access token task."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError

from azure_tasks.lib.cancellation import CancellationToken
from azure_tasks.lib.definitions import OAuthProperties
from azure_tasks.lib.errors import InvalidOptionError, TaskCancelledError, TokenAcquisitionError
from azure_tasks.lib.oauth_tasks import get_access_token, parse_authority, resource_scope

CREDENTIAL = "azure_tasks.lib.oauth_tasks.ClientSecretCredential"


@pytest.fixture
def properties():
    return OAuthProperties(
        auth_context_url="https://login.microsoftonline.com/contoso.onmicrosoft.com",
        client_id="11111111-2222-3333-4444-555555555555",
        client_secret="s3cr3t",
        resource="https://management.azure.com/",
    )


class TestParseAuthority:
    def test_host_and_tenant(self):
        assert parse_authority("https://login.microsoftonline.com/contoso.onmicrosoft.com/") == (
            "login.microsoftonline.com",
            "contoso.onmicrosoft.com",
        )

    @pytest.mark.parametrize(
        "url",
        ["http://login.microsoftonline.com/tenant", "https://login.microsoftonline.com", "not a url"],
    )
    def test_rejects_bad_urls(self, url):
        with pytest.raises(InvalidOptionError) as exc_info:
            parse_authority(url)

        assert exc_info.value.option == "auth_context_url"


class TestResourceScope:
    @pytest.mark.parametrize(
        "resource,expected",
        [
            ("https://management.azure.com/", "https://management.azure.com/.default"),
            ("https://graph.microsoft.com", "https://graph.microsoft.com/.default"),
            ("api://my-app/.default", "api://my-app/.default"),
        ],
    )
    def test_scope(self, resource, expected):
        assert resource_scope(resource) == expected


class TestGetAccessToken:
    def test_returns_token(self, properties):
        with patch(CREDENTIAL) as credential_cls:
            credential = credential_cls.return_value
            credential.get_token.return_value = AccessToken("eyJ0eXAi.payload.sig", 1700000000)

            token = get_access_token(properties)

        assert token == "eyJ0eXAi.payload.sig"
        credential_cls.assert_called_once_with(
            tenant_id="contoso.onmicrosoft.com",
            client_id="11111111-2222-3333-4444-555555555555",
            client_secret="s3cr3t",
            authority="login.microsoftonline.com",
        )
        credential.get_token.assert_called_once_with("https://management.azure.com/.default")
        credential.close.assert_called_once_with()

    def test_authentication_failure(self, properties):
        with patch(CREDENTIAL) as credential_cls:
            credential = credential_cls.return_value
            credential.get_token.side_effect = ClientAuthenticationError("AADSTS7000215: Invalid client secret")

            with pytest.raises(TokenAcquisitionError) as exc_info:
                get_access_token(properties)

        assert "Failed to obtain the JWT token" in str(exc_info.value)
        assert exc_info.value.resource == "https://management.azure.com/"
        credential.close.assert_called_once_with()

    def test_empty_token(self, properties):
        with patch(CREDENTIAL) as credential_cls:
            credential_cls.return_value.get_token.return_value = AccessToken("", 0)

            with pytest.raises(TokenAcquisitionError):
                get_access_token(properties)

    def test_bad_authority_fails_before_credential(self, properties):
        bad = properties.model_copy(update={"auth_context_url": "https://login.microsoftonline.com"})

        with patch(CREDENTIAL) as credential_cls:
            with pytest.raises(InvalidOptionError):
                get_access_token(bad)

        credential_cls.assert_not_called()

    def test_cancelled(self, properties):
        token = CancellationToken()
        token.cancel()

        with patch(CREDENTIAL) as credential_cls:
            with pytest.raises(TaskCancelledError):
                get_access_token(properties, token)

        credential_cls.assert_not_called()

    def test_secret_not_in_repr(self, properties):
        assert "s3cr3t" not in repr(properties)
