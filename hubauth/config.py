"""Configuration for the GitHub App webhook service."""

import base64
import binascii
import logging
from functools import lru_cache
from typing import Literal
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretBytes, SecretStr, model_validator
from pydantic_settings import BaseSettings

from hubauth.errors import InvalidApplicationId, InvalidPrivateKey, UnsupportedSignatureAlgorithm
from hubauth.signature import SUPPORTED_ALGORITHMS

logger = logging.getLogger(__name__)

# GitHub rejects app JWTs whose exp - iat exceeds 10 minutes
MAX_ASSERTION_WINDOW = 10 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # GitHub App credentials
    github_app_id: str = Field(
        ...,
        validation_alias=AliasChoices("github_app_id", "gh_applicationid"),
        description="GitHub App ID",
    )
    github_app_private_key: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("github_app_private_key", "gh_privatekey"),
        description="GitHub App private key (PEM content, file path, or base64 PEM)",
    )
    github_webhook_secret: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("github_webhook_secret", "gh_secretkey"),
        description="Webhook secret for signature verification",
    )

    # Optional: GitHub Enterprise
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub API base URL",
    )

    # Signature verification
    signature_algorithm: str = Field(default="sha1", description="Accepted signature algorithm tag")
    normalize_line_endings: bool = Field(
        default=True, description="Canonicalize CRLF to LF before hashing the body"
    )

    # Assertion and token exchange
    jwt_expiration_seconds: int = Field(default=540, description="App JWT lifetime after now")
    jwt_clock_skew_seconds: int = Field(default=60, description="How far iat is backdated")
    token_request_timeout: float = Field(default=10.0, description="Token exchange timeout (s)")

    # App settings
    app_name: str = Field(default="GitHubApp", description="Application name")
    log_level: str = Field(default="INFO", description="Logging level")
    environment: str = Field(default="production", description="Environment name")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True


class AuthConfig(BaseModel):
    """Validated, immutable credentials shared by the verifier and the issuer."""

    model_config = ConfigDict(frozen=True)

    webhook_secret: SecretBytes
    application_id: int = Field(gt=0)
    private_key: SecretStr
    signature_algorithm: Literal["sha1", "sha256"] = "sha1"
    normalize_line_endings: bool = True
    jwt_expiration_seconds: int = Field(default=540, gt=0, le=MAX_ASSERTION_WINDOW)
    jwt_clock_skew_seconds: int = Field(default=60, ge=0)
    request_timeout: float = Field(default=10.0, gt=0)
    api_url: str = "https://api.github.com"
    app_name: str = "GitHubApp"

    @model_validator(mode="after")
    def _check_window(self) -> "AuthConfig":
        window = self.jwt_expiration_seconds + self.jwt_clock_skew_seconds
        if window > MAX_ASSERTION_WINDOW:
            raise ValueError(
                f"JWT window of {window}s exceeds the {MAX_ASSERTION_WINDOW}s maximum"
            )
        return self


def parse_application_id(value: str | int) -> int:
    """Parse the GitHub App id.

    Raises:
        InvalidApplicationId: If the value is not a positive integer
    """
    try:
        app_id = int(str(value).strip())
    except ValueError:
        raise InvalidApplicationId(f"GITHUB_APP_ID must be an integer, got '{value}'") from None

    if app_id <= 0:
        raise InvalidApplicationId(f"GITHUB_APP_ID must be positive, got {app_id}")
    return app_id


def normalize_pem(key: str) -> str:
    """Turn escaped or CRLF newlines into LF."""
    return key.replace("\\n", "\n").replace("\r\n", "\n").strip() + "\n"


def resolve_private_key(private_key: str) -> str:
    """Resolve the configured private key into PEM text.

    The key may be given as PEM content, a path to a PEM file, or base64-encoded
    PEM (common for environment variables).

    Args:
        private_key: Raw configuration value

    Returns:
        Newline-normalized PEM string

    Raises:
        InvalidPrivateKey: If no PEM key can be obtained or it does not load
    """
    value = private_key.strip()

    if value.startswith("-----BEGIN"):
        # Direct PEM content
        key = value
    elif len(value) < 256 and Path(value).is_file():
        # File path (only check if short enough to be a path)
        key = Path(value).read_text(encoding="utf-8")
    else:
        try:
            key = base64.b64decode(value, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise InvalidPrivateKey(
                "GITHUB_APP_PRIVATE_KEY must be PEM content, a file path, or base64-encoded PEM"
            ) from None
        if not key.lstrip().startswith("-----BEGIN"):
            raise InvalidPrivateKey("Decoded GITHUB_APP_PRIVATE_KEY is not a PEM key")

    key = normalize_pem(key)

    try:
        loaded = serialization.load_pem_private_key(key.encode("utf-8"), password=None)
    except (ValueError, TypeError) as e:
        # Do not chain: the original exception may quote key bytes
        raise InvalidPrivateKey(
            f"GITHUB_APP_PRIVATE_KEY could not be loaded ({type(e).__name__})"
        ) from None

    # RS256 is the only algorithm GitHub accepts for app JWTs
    if not isinstance(loaded, rsa.RSAPrivateKey):
        raise InvalidPrivateKey(
            f"GITHUB_APP_PRIVATE_KEY must be an RSA key, got {type(loaded).__name__}"
        )

    return key


def load_auth_config(settings: Settings) -> AuthConfig:
    """Build the immutable auth configuration from settings.

    Raises:
        InvalidApplicationId: If the app id is not a positive integer
        InvalidPrivateKey: If the private key is malformed or not RSA
        UnsupportedSignatureAlgorithm: If the signature algorithm is unknown
    """
    if settings.signature_algorithm not in SUPPORTED_ALGORITHMS:
        raise UnsupportedSignatureAlgorithm(
            f"SIGNATURE_ALGORITHM must be one of {sorted(SUPPORTED_ALGORITHMS)}, "
            f"got '{settings.signature_algorithm}'"
        )

    app_id = parse_application_id(settings.github_app_id)
    key = resolve_private_key(settings.github_app_private_key.get_secret_value())

    logger.info(
        f"Loaded GitHub App {app_id} credentials (signature algorithm: {settings.signature_algorithm})"
    )

    return AuthConfig(
        webhook_secret=settings.github_webhook_secret.get_secret_value().encode("utf-8"),
        application_id=app_id,
        private_key=key,
        signature_algorithm=settings.signature_algorithm,
        normalize_line_endings=settings.normalize_line_endings,
        jwt_expiration_seconds=settings.jwt_expiration_seconds,
        jwt_clock_skew_seconds=settings.jwt_clock_skew_seconds,
        request_timeout=settings.token_request_timeout,
        api_url=settings.github_api_url.rstrip("/"),
        app_name=settings.app_name,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@lru_cache
def get_auth_config() -> AuthConfig:
    """Get the cached auth configuration, loaded once per process."""
    return load_auth_config(get_settings())
