"""Per-request webhook context: verification, payload access and API clients."""

import json
import logging
from functools import cached_property
from typing import Any

import httpx

from hubauth.credentials import CredentialIssuer
from hubauth.errors import MalformedPayload
from hubauth.schemas import WebhookRequest
from hubauth.signature import SignatureVerifier

logger = logging.getLogger(__name__)


class WebhookContext:
    """Wraps one buffered webhook delivery.

    The body is never re-read; the payload is parsed lazily from the buffer
    and only after the caller has verified it.
    """

    def __init__(
        self,
        request: WebhookRequest,
        verifier: SignatureVerifier,
        issuer: CredentialIssuer,
    ) -> None:
        self.request = request
        self.verifier = verifier
        self.issuer = issuer

    @cached_property
    def data(self) -> dict[str, Any]:
        """Parsed JSON payload.

        Raises:
            MalformedPayload: If the body is not a JSON object
        """
        try:
            data = json.loads(self.request.body)
        except ValueError as e:
            raise MalformedPayload(f"Webhook body is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise MalformedPayload(f"Webhook payload must be a JSON object, got {type(data).__name__}")
        return data

    def verify(self) -> None:
        """Verify the delivery signature.

        Raises:
            SignatureError: If the body does not match the signature header
        """
        self.verifier.verify(self.request.body, self.request.signature)
        logger.debug(f"Verified delivery {self.request.delivery}")

    def is_event(self, event_type: str) -> bool:
        return self.request.event.casefold() == event_type.casefold()

    def is_action(self, action: str) -> bool:
        value = self.data.get("action")
        return isinstance(value, str) and value.casefold() == action.casefold()

    @property
    def installation_id(self) -> int | None:
        installation = self.data.get("installation")
        if not isinstance(installation, dict):
            return None
        installation_id = installation.get("id")
        return installation_id if isinstance(installation_id, int) else None

    def get_app_client(self) -> httpx.AsyncClient:
        """Create an API client authenticated as the GitHub App itself.

        Returns:
            Client the caller must close (use as an async context manager)
        """
        assertion = self.issuer.mint_assertion()
        return httpx.AsyncClient(
            base_url=self.issuer.config.api_url,
            headers=self.issuer.get_headers(assertion.token),
            transport=self.issuer.transport,
            timeout=self.issuer.config.request_timeout,
        )

    async def get_installation_client(self, installation_id: int | None = None) -> httpx.AsyncClient:
        """Create an API client acting on behalf of one installation.

        Args:
            installation_id: Installation to act for, defaults to the payload's

        Returns:
            Client the caller must close (use as an async context manager)

        Raises:
            MalformedPayload: If no installation id is available
            CredentialError: If the token exchange fails
        """
        if installation_id is None:
            installation_id = self.installation_id
        if installation_id is None:
            raise MalformedPayload("Webhook payload has no installation id")

        token = await self.issuer.get_installation_token(installation_id)

        headers = self.issuer.get_headers(token.token.get_secret_value())
        headers["User-Agent"] = f"{self.issuer.config.app_name}_{installation_id}"

        return httpx.AsyncClient(
            base_url=self.issuer.config.api_url,
            headers=headers,
            transport=self.issuer.transport,
            timeout=self.issuer.config.request_timeout,
        )
