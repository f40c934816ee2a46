import pytest
from unittest.mock import Mock

import google.auth
from google.auth.exceptions import DefaultCredentialsError, RefreshError, TransportError

from build_relay.auth import (
    CLOUD_PLATFORM_SCOPE,
    GoogleAuthProvider,
    PushTokenVerifier,
)
from build_relay.exceptions import ConfigurationError, PushAuthenticationError


@pytest.fixture
def credentials(monkeypatch):
    credentials = Mock()
    credentials.valid = False
    credentials.token = "fresh-token"
    default = Mock(return_value=(credentials, "p1"))
    monkeypatch.setattr("google.auth.default", default)
    return credentials


def test_discovers_default_credentials(credentials):
    provider = GoogleAuthProvider()

    assert provider.project_id == "p1"
    google.auth.default.assert_called_once_with(scopes=[CLOUD_PLATFORM_SCOPE])


def test_missing_credentials_are_fatal(monkeypatch):
    monkeypatch.setattr(
        "google.auth.default", Mock(side_effect=DefaultCredentialsError("none"))
    )

    with pytest.raises(ConfigurationError):
        GoogleAuthProvider()


@pytest.mark.asyncio
async def test_refreshes_expired_token(credentials):
    provider = GoogleAuthProvider()

    headers = await provider.authorization()

    assert headers == {"Authorization": "Bearer fresh-token"}
    credentials.refresh.assert_called_once()


@pytest.mark.asyncio
async def test_valid_token_is_reused(credentials):
    credentials.valid = True
    provider = GoogleAuthProvider()

    await provider.authorization()

    credentials.refresh.assert_not_called()


@pytest.mark.asyncio
async def test_refresh_failure(credentials):
    credentials.refresh.side_effect = RefreshError("revoked")
    provider = GoogleAuthProvider()

    with pytest.raises(ConfigurationError):
        await provider.authorization()


@pytest.mark.asyncio
async def test_unreachable_token_endpoint(credentials):
    credentials.refresh.side_effect = TransportError("connection refused")
    provider = GoogleAuthProvider()

    with pytest.raises(ConfigurationError):
        await provider.authorization()


AUDIENCE = "https://relay.example.com/pubsub"
ACCOUNT = "pubsub-push@p1.iam.gserviceaccount.com"


@pytest.mark.asyncio
async def test_push_token_verified(monkeypatch):
    verify = Mock(return_value={"email": ACCOUNT, "email_verified": True})
    monkeypatch.setattr("google.oauth2.id_token.verify_oauth2_token", verify)
    verifier = PushTokenVerifier(AUDIENCE, service_account=ACCOUNT)

    claims = await verifier.verify("Bearer abc.def.ghi")

    assert claims["email"] == ACCOUNT
    assert verify.call_args[0][0] == "abc.def.ghi"
    assert verify.call_args[1]["audience"] == AUDIENCE


@pytest.mark.asyncio
@pytest.mark.parametrize("header", [None, "", "Token abc", "bearer abc"])
async def test_push_token_missing(header):
    verifier = PushTokenVerifier(AUDIENCE)

    with pytest.raises(PushAuthenticationError) as excinfo:
        await verifier.verify(header)

    assert excinfo.value.status == 401


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, status",
    [
        (ValueError("Token expired"), 403),
        (RefreshError("Wrong issuer"), 403),
        (TransportError("certs unavailable"), 503),
    ],
)
async def test_push_token_invalid(monkeypatch, error, status):
    monkeypatch.setattr(
        "google.oauth2.id_token.verify_oauth2_token", Mock(side_effect=error)
    )
    verifier = PushTokenVerifier(AUDIENCE)

    with pytest.raises(PushAuthenticationError) as excinfo:
        await verifier.verify("Bearer abc")

    assert excinfo.value.status == status


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "claims",
    [
        {"email": "someone@else.iam.gserviceaccount.com", "email_verified": True},
        {"email": ACCOUNT, "email_verified": False},
        {},
    ],
)
async def test_push_token_wrong_account(monkeypatch, claims):
    monkeypatch.setattr(
        "google.oauth2.id_token.verify_oauth2_token", Mock(return_value=claims)
    )
    verifier = PushTokenVerifier(AUDIENCE, service_account=ACCOUNT)

    with pytest.raises(PushAuthenticationError) as excinfo:
        await verifier.verify("Bearer abc")

    assert excinfo.value.status == 403
