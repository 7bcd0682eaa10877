"""GitHub App authentication: app JWT minting and installation token exchange."""

import logging
import time
from typing import Any, Callable

import httpx
import jwt
from pydantic import ValidationError

from hubauth.config import AuthConfig
from hubauth.errors import (
    AssertionExpired,
    InstallationNotFound,
    InvalidPrivateKey,
    TokenExchangeFailed,
    TransientNetworkError,
)
from hubauth.schemas import Assertion, InstallationToken

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


class CredentialIssuer:
    """Mints app assertions and exchanges them for installation tokens.

    Holds no mutable state; every call produces fresh credentials.
    """

    def __init__(
        self,
        config: AuthConfig,
        clock: Callable[[], float] = time.time,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the issuer.

        Args:
            config: Validated auth configuration
            clock: Source of the current unix time
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.config = config
        self.clock = clock
        self.transport = transport

    def get_headers(self, token: str) -> dict[str, str]:
        """Get standard headers for GitHub API requests.

        Args:
            token: Access token (installation or JWT)

        Returns:
            Headers dict
        """
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": self.config.app_name,
        }

    def mint_assertion(self, now: float | None = None) -> Assertion:
        """Generate a JWT for GitHub App authentication.

        Args:
            now: Unix time to mint at, defaults to the issuer's clock

        Returns:
            Signed assertion

        Raises:
            InvalidPrivateKey: If the key cannot sign RS256
        """
        now = int(self.clock() if now is None else now)
        payload = {
            "iat": now - self.config.jwt_clock_skew_seconds,  # backdated for clock drift
            "exp": now + self.config.jwt_expiration_seconds,
            "iss": str(self.config.application_id),
        }

        try:
            token = jwt.encode(
                payload,
                self.config.private_key.get_secret_value(),
                algorithm="RS256",
            )
        except (ValueError, TypeError, jwt.PyJWTError) as e:
            raise InvalidPrivateKey(
                f"Private key cannot sign RS256 assertions ({type(e).__name__})"
            ) from None

        return Assertion(
            issuer=self.config.application_id,
            issued_at=payload["iat"],
            expires_at=payload["exp"],
            token=token,
        )

    async def exchange(
        self,
        installation_id: int,
        assertion: Assertion,
        timeout: float | None = None,
        repositories: list[str] | None = None,
        permissions: dict[str, str] | None = None,
    ) -> InstallationToken:
        """Exchange an app assertion for an installation access token.

        One request, no retries. Retry policy belongs to the caller.

        Args:
            installation_id: GitHub App installation ID
            assertion: Assertion valid at the current time
            timeout: Request timeout in seconds, defaults to the configured one
            repositories: Optional repository names to narrow the token to
            permissions: Optional permission subset to narrow the token to

        Returns:
            Installation access token

        Raises:
            AssertionExpired: If the assertion is not valid now
            InstallationNotFound: If the app is not installed there
            TokenExchangeFailed: For any other non-success response
            TransientNetworkError: If GitHub could not be reached
        """
        if isinstance(installation_id, bool) or not isinstance(installation_id, int) or installation_id <= 0:
            raise ValueError(f"installation_id must be a positive integer, got {installation_id!r}")

        if not assertion.is_valid_at(self.clock()):
            raise AssertionExpired(
                f"Assertion for app {assertion.issuer} is not valid "
                f"(iat={assertion.issued_at}, exp={assertion.expires_at})"
            )

        body: dict[str, Any] = {}
        if repositories:
            body["repositories"] = repositories
        if permissions:
            body["permissions"] = permissions

        url = f"{self.config.api_url}/app/installations/{installation_id}/access_tokens"
        timeout = self.config.request_timeout if timeout is None else timeout

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=timeout) as client:
                response = await client.post(
                    url,
                    headers=self.get_headers(assertion.token),
                    json=body or None,
                )
        except httpx.TransportError as e:
            logger.warning(f"Token exchange for installation {installation_id} failed: {e!r}")
            raise TransientNetworkError(
                f"Could not reach {self.config.api_url} for installation {installation_id}: {e}"
            ) from e

        if response.status_code == 404:
            raise InstallationNotFound(installation_id, _error_message(response))

        if not response.is_success:
            message = _error_message(response)
            logger.error(
                f"Token exchange for installation {installation_id} failed: "
                f"{response.status_code} {message}"
            )
            raise TokenExchangeFailed(response.status_code, message)

        try:
            token = InstallationToken.model_validate(
                {**response.json(), "installation_id": installation_id}
            )
        except (TypeError, ValueError, ValidationError) as e:
            raise TokenExchangeFailed(
                response.status_code, f"Unexpected token response ({type(e).__name__})"
            ) from None

        logger.info(
            f"Issued token for installation {installation_id} (expires {token.expires_at.isoformat()})"
        )
        return token

    async def get_installation_token(
        self,
        installation_id: int,
        timeout: float | None = None,
        repositories: list[str] | None = None,
        permissions: dict[str, str] | None = None,
    ) -> InstallationToken:
        """Mint a fresh assertion and exchange it for an installation token.

        Args:
            installation_id: GitHub App installation ID
            timeout: Request timeout in seconds
            repositories: Optional repository names to narrow the token to
            permissions: Optional permission subset to narrow the token to

        Returns:
            Installation access token
        """
        assertion = self.mint_assertion()
        return await self.exchange(
            installation_id,
            assertion,
            timeout=timeout,
            repositories=repositories,
            permissions=permissions,
        )


def _error_message(response: httpx.Response) -> str:
    """Pull GitHub's error message out of a response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.text or response.reason_phrase
