import asyncio
from typing import Protocol

import google.auth
from google.auth.exceptions import (
    DefaultCredentialsError,
    GoogleAuthError,
    TransportError,
)
import google.auth.transport.requests
from google.oauth2 import id_token
from sanic.log import logger

from build_relay.exceptions import ConfigurationError, PushAuthenticationError

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class AuthProvider(Protocol):
    async def authorization(self) -> dict[str, str]:
        """Headers that authenticate a request against Google APIs."""
        ...


class GoogleAuthProvider:
    """Application default credentials, discovered once at startup."""

    def __init__(self, scopes: tuple[str, ...] = (CLOUD_PLATFORM_SCOPE,)):
        try:
            self._credentials, self.project_id = google.auth.default(
                scopes=list(scopes)
            )
        except DefaultCredentialsError as e:
            raise ConfigurationError(f"No application default credentials: {e}") from e
        self._request = google.auth.transport.requests.Request()
        logger.debug("Using default credentials for project %s", self.project_id)

    async def authorization(self) -> dict[str, str]:
        if not self._credentials.valid:
            logger.debug("Refreshing access token")
            try:
                await asyncio.to_thread(self._credentials.refresh, self._request)
            except GoogleAuthError as e:
                raise ConfigurationError(f"Could not refresh credentials: {e}") from e
        return {"Authorization": f"Bearer {self._credentials.token}"}


class PushTokenVerifier:
    """Checks the OIDC token Pub/Sub attaches to authenticated push requests."""

    def __init__(self, audience: str, service_account: str | None = None):
        self.audience = audience
        self.service_account = service_account
        self._request = google.auth.transport.requests.Request()

    async def verify(self, authorization: str | None) -> dict:
        if not authorization or not authorization.startswith("Bearer "):
            raise PushAuthenticationError("Missing bearer token", status=401)
        token = authorization.removeprefix("Bearer ").strip()

        try:
            claims = await asyncio.to_thread(
                id_token.verify_oauth2_token,
                token,
                self._request,
                audience=self.audience,
            )
        except TransportError as e:
            raise PushAuthenticationError(
                f"Could not fetch token certificates: {e}", status=503
            ) from e
        except (GoogleAuthError, ValueError) as e:
            raise PushAuthenticationError(f"Invalid push token: {e}", status=403) from e

        if self.service_account is not None and (
            claims.get("email") != self.service_account
            or not claims.get("email_verified")
        ):
            raise PushAuthenticationError(
                f"Push token issued to unexpected account {claims.get('email')}",
                status=403,
            )

        logger.debug("Push token verified for %s", claims.get("email"))
        return claims
