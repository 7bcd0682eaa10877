"""GitHub App webhook verification and installation authentication."""

from hubauth.config import AuthConfig, Settings, get_auth_config, get_settings, load_auth_config
from hubauth.context import WebhookContext
from hubauth.credentials import CredentialIssuer
from hubauth.encoding import from_hex, secret_equal, to_hex
from hubauth.errors import (
    AssertionExpired,
    ConfigurationError,
    CredentialError,
    HubAuthError,
    InstallationNotFound,
    InvalidApplicationId,
    InvalidPrivateKey,
    InvalidSignatureEncoding,
    MalformedPayload,
    MalformedSignatureHeader,
    SignatureError,
    SignatureMismatch,
    TokenExchangeFailed,
    TransientNetworkError,
    UnsupportedSignatureAlgorithm,
)
from hubauth.schemas import Assertion, InstallationToken, WebhookRequest
from hubauth.signature import SignatureVerifier

__all__ = [
    "Assertion",
    "AssertionExpired",
    "AuthConfig",
    "ConfigurationError",
    "CredentialError",
    "CredentialIssuer",
    "HubAuthError",
    "InstallationNotFound",
    "InstallationToken",
    "InvalidApplicationId",
    "InvalidPrivateKey",
    "InvalidSignatureEncoding",
    "MalformedPayload",
    "MalformedSignatureHeader",
    "Settings",
    "SignatureError",
    "SignatureMismatch",
    "SignatureVerifier",
    "TokenExchangeFailed",
    "TransientNetworkError",
    "UnsupportedSignatureAlgorithm",
    "WebhookContext",
    "WebhookRequest",
    "from_hex",
    "get_auth_config",
    "get_settings",
    "load_auth_config",
    "secret_equal",
    "to_hex",
]
