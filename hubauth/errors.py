"""Exception taxonomy for webhook verification and credential issuance.

None of these messages ever carry the shared secret or private key material.
"""


class HubAuthError(Exception):
    """Base class for all hubauth failures."""


# --- Signature verification (reject the request) ---


class SignatureError(HubAuthError):
    """The request body could not be authenticated."""


class MalformedSignatureHeader(SignatureError):
    """Signature header is missing, badly shaped, or uses an unsupported algorithm."""

    def __init__(self, header: str | None, reason: str) -> None:
        self.header = header
        self.reason = reason
        super().__init__(f"Incorrect signature header - '{header}' ({reason})")


class InvalidSignatureEncoding(SignatureError):
    """Signature digest is not valid hex."""

    def __init__(self, content: str, reason: str) -> None:
        self.content = content
        self.reason = reason
        super().__init__(f"The signature format was not valid - '{content}' ({reason})")


class SignatureMismatch(SignatureError):
    """Computed digest does not match the one sent by the platform."""

    def __init__(self, expected_hex: str, actual_hex: str) -> None:
        self.expected_hex = expected_hex
        self.actual_hex = actual_hex
        super().__init__(
            f"Signature does not match body - '{expected_hex}' - '{actual_hex}'"
        )


# --- Payload (verified body the handler cannot act on) ---


class MalformedPayload(HubAuthError):
    """Verified webhook payload is not the JSON object the handler expects."""


# --- Configuration (deployment misconfiguration) ---


class ConfigurationError(HubAuthError, ValueError):
    """Process-wide configuration is unusable."""


class InvalidApplicationId(ConfigurationError):
    """The GitHub App id is not a positive integer."""


class InvalidPrivateKey(ConfigurationError):
    """The GitHub App private key is malformed or in the wrong format."""


class UnsupportedSignatureAlgorithm(ConfigurationError):
    """The configured signature algorithm tag is not supported."""


# --- Credential exchange (cannot act for the installation) ---


class CredentialError(HubAuthError):
    """An installation token could not be obtained."""


class AssertionExpired(CredentialError):
    """The app assertion is outside its validity window."""


class InstallationNotFound(CredentialError):
    """The installation does not exist or the app is not installed there."""

    def __init__(self, installation_id: int, message: str = "Not Found") -> None:
        self.installation_id = installation_id
        self.message = message
        super().__init__(f"Installation {installation_id} not found: {message}")


class TokenExchangeFailed(CredentialError):
    """The token endpoint answered with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Token exchange failed ({status_code}): {message}")


class TransientNetworkError(CredentialError):
    """The token endpoint could not be reached. Safe for the caller to retry."""
