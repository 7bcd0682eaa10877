"""Pydantic models exchanged between the boundary layer and the core."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr


class WebhookRequest(BaseModel):
    """One inbound webhook delivery, body already buffered."""

    model_config = ConfigDict(frozen=True)

    body: bytes = Field(description="Raw request body, read exactly once")
    signature: str | None = Field(default=None, description="Signature header value")
    event: str = Field(default="", description="X-GitHub-Event header value")
    delivery: str | None = Field(default=None, description="X-GitHub-Delivery header value")


class Assertion(BaseModel):
    """Self-signed GitHub App JWT and its claims."""

    model_config = ConfigDict(frozen=True)

    issuer: int = Field(description="GitHub App id (iss)")
    issued_at: int = Field(description="Unix time the JWT becomes valid (iat)")
    expires_at: int = Field(description="Unix time the JWT expires (exp)")
    token: str = Field(repr=False, description="Encoded RS256 JWT")

    @property
    def lifetime(self) -> int:
        return self.expires_at - self.issued_at

    def is_valid_at(self, now: float) -> bool:
        """Whether the assertion may be presented at the given unix time."""
        return self.issued_at <= now < self.expires_at


class InstallationToken(BaseModel):
    """Installation access token returned by the token endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: SecretStr
    installation_id: int
    expires_at: datetime = Field(validation_alias=AliasChoices("expires_at", "expiresAt"))
    permissions: dict[str, str] = Field(default_factory=dict)
    repository_selection: str | None = None
