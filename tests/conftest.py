"""Shared test fixtures: RSA key, auth config and a mocked token endpoint."""

import json
from typing import Callable

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from hubauth.config import AuthConfig
from hubauth.credentials import CredentialIssuer
from hubauth.signature import SignatureVerifier

# Fixed clock for deterministic assertions
NOW = 1_700_000_000

WEBHOOK_SECRET = "test-secret"


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """Generate one RSA key for the whole test session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_key) -> str:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture(scope="session")
def public_key_pem(rsa_key) -> str:
    return rsa_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")


@pytest.fixture
def auth_config(private_key_pem) -> AuthConfig:
    """Create auth config for app 42."""
    return AuthConfig(
        webhook_secret=WEBHOOK_SECRET.encode(),
        application_id=42,
        private_key=private_key_pem,
    )


@pytest.fixture
def verifier(auth_config) -> SignatureVerifier:
    return SignatureVerifier(auth_config.webhook_secret.get_secret_value())


class TokenEndpoint:
    """Mock GitHub API recording every request it receives."""

    def __init__(self, status_code: int = 201, payload: dict | None = None) -> None:
        self.status_code = status_code
        self.payload = payload if payload is not None else {
            "token": "abc",
            "expires_at": NOW + 3600,
            "permissions": {"issues": "write"},
            "repository_selection": "all",
        }
        self.requests: list[httpx.Request] = []
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if request.url.path.endswith("/comments"):
            body = json.loads(request.content)
            return httpx.Response(201, json={"id": 1, "body": body["body"]})
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def endpoint() -> TokenEndpoint:
    return TokenEndpoint()


@pytest.fixture
def make_issuer(auth_config, endpoint) -> Callable[..., CredentialIssuer]:
    """Build an issuer on a fixed clock talking to the mock endpoint."""

    def factory(config: AuthConfig | None = None, now: float = NOW) -> CredentialIssuer:
        return CredentialIssuer(
            config or auth_config,
            clock=lambda: now,
            transport=endpoint.transport,
        )

    return factory
