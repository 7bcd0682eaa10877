"""Tests for the webhook FastAPI service."""

import json
import logging
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from hubauth.credentials import CredentialIssuer
from hubauth.main import ISSUE_COMMENT_BODY, app
from hubauth.signature import SignatureVerifier

ISSUE_OPENED = {
    "action": "opened",
    "issue": {"number": 12},
    "installation": {"id": 7},
    "repository": {"name": "repo", "owner": {"login": "octo"}},
}


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def mock_auth_config(auth_config, endpoint):
    """Serve the test config and route GitHub calls to the mock endpoint."""

    def issuer_factory(config):
        return CredentialIssuer(config, transport=endpoint.transport)

    with patch("hubauth.main.get_auth_config", return_value=auth_config), patch(
        "hubauth.main.CredentialIssuer", side_effect=issuer_factory
    ):
        yield auth_config


def post_webhook(client, payload, event: str, secret: bytes = b"test-secret"):
    body = json.dumps(payload).encode()
    return client.post(
        "/webhook",
        content=body,
        headers={
            "X-Hub-Signature": SignatureVerifier(secret).sign(body),
            "X-GitHub-Event": event,
            "X-GitHub-Delivery": "delivery-1",
            "Content-Type": "application/json",
        },
    )


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root(self, client):
        """Should return app info."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health(self, client):
        """Should return healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestWebhookSignature:
    """Tests for signature checks on the webhook endpoint."""

    def test_rejects_missing_signature(self, client):
        """Should reject requests without signature."""
        response = client.post("/webhook", json={"action": "test"})
        assert response.status_code == 401
        assert response.json()["error"] == "MalformedSignatureHeader"

    def test_rejects_invalid_signature(self, client):
        """Should reject requests with invalid signature."""
        response = client.post(
            "/webhook",
            json={"action": "test"},
            headers={"X-Hub-Signature": "sha1=invalid"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "InvalidSignatureEncoding"

    def test_rejects_wrong_secret(self, client):
        """Should reject bodies signed with another secret."""
        response = post_webhook(client, {"zen": "x"}, "ping", secret=b"other")
        assert response.status_code == 401
        assert response.json()["message"] == "Signature verification failed"

    def test_rejects_sha256_header_when_sha1_configured(self, client):
        """Should only read the configured signature header."""
        body = b'{"zen": "x"}'
        response = client.post(
            "/webhook",
            content=body,
            headers={"X-Hub-Signature-256": SignatureVerifier(b"test-secret", "sha256").sign(body)},
        )
        assert response.status_code == 401

    def test_sha256_configured(self, client, mock_auth_config):
        """Should verify X-Hub-Signature-256 when sha256 is configured."""
        config = mock_auth_config.model_copy(update={"signature_algorithm": "sha256"})
        body = b'{"zen": "x"}'

        with patch("hubauth.main.get_auth_config", return_value=config):
            response = client.post(
                "/webhook",
                content=body,
                headers={
                    "X-Hub-Signature-256": SignatureVerifier(b"test-secret", "sha256").sign(body),
                    "X-GitHub-Event": "ping",
                },
            )

        assert response.status_code == 200


class TestWebhookEvents:
    """Tests for event handling."""

    def test_handles_ping_event(self, client):
        """Should handle ping events."""
        response = post_webhook(client, {"zen": "Keep it simple", "hook_id": 12345}, "ping")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pong"
        assert data["zen"] == "Keep it simple"

    def test_alternative_endpoint(self, client):
        """Should serve /webhook/github too."""
        body = json.dumps({"zen": "z"}).encode()
        response = client.post(
            "/webhook/github",
            content=body,
            headers={"X-Hub-Signature": SignatureVerifier(b"test-secret").sign(body), "X-GitHub-Event": "ping"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "pong"

    def test_comments_on_opened_issue(self, client, endpoint):
        """Should exchange an installation token and comment on the issue."""
        response = post_webhook(client, ISSUE_OPENED, "Issues")

        assert response.status_code == 200
        assert response.json()["status"] == "success"

        token_request, comment_request = endpoint.requests
        assert token_request.url.path == "/app/installations/7/access_tokens"
        assert comment_request.url.path == "/repos/octo/repo/issues/12/comments"
        assert comment_request.headers["Authorization"] == "Bearer abc"
        assert json.loads(comment_request.content) == {"body": ISSUE_COMMENT_BODY}

    def test_ignores_other_actions(self, client, endpoint):
        """Should take no action for other issue actions."""
        response = post_webhook(client, {**ISSUE_OPENED, "action": "closed"}, "issues")

        assert response.status_code == 200
        assert response.json()["status"] == "no action"
        assert endpoint.requests == []

    def test_ignores_other_events(self, client, endpoint):
        """Should take no action for other events."""
        response = post_webhook(client, ISSUE_OPENED, "push")

        assert response.json()["status"] == "no action"
        assert endpoint.requests == []


class TestWebhookErrors:
    """Tests for credential failures surfaced by the endpoint."""

    def test_installation_not_found(self, client, endpoint):
        """Should return 404 when the app is not installed."""
        endpoint.status_code = 404
        endpoint.payload = {"message": "Not Found"}

        response = post_webhook(client, ISSUE_OPENED, "issues")

        assert response.status_code == 404
        assert response.json()["error"] == "InstallationNotFound"
        assert len(endpoint.requests) == 1

    def test_token_exchange_failed(self, client, endpoint):
        """Should return 502 when GitHub refuses the exchange."""
        endpoint.status_code = 401
        endpoint.payload = {"message": "Bad credentials"}

        response = post_webhook(client, ISSUE_OPENED, "issues")

        assert response.status_code == 502
        assert "Bad credentials" in response.json()["message"]

    def test_transient_network_error(self, client, endpoint):
        """Should return 503 when GitHub is unreachable."""
        endpoint.error = httpx.ConnectError("connection refused")

        response = post_webhook(client, ISSUE_OPENED, "issues")

        assert response.status_code == 503
        assert response.json()["error"] == "TransientNetworkError"


class TestWebhookPayloads:
    """Tests for signed payloads the handler cannot act on."""

    def test_non_object_payload(self, client, endpoint):
        """Should return 400 for a signed JSON array."""
        response = post_webhook(client, [1, 2], "ping")

        assert response.status_code == 400
        assert response.json()["error"] == "MalformedPayload"

    def test_invalid_json(self, client):
        """Should return 400 for a signed body that is not JSON."""
        body = b"not json"
        response = client.post(
            "/webhook",
            content=body,
            headers={"X-Hub-Signature": SignatureVerifier(b"test-secret").sign(body), "X-GitHub-Event": "ping"},
        )

        assert response.status_code == 400

    def test_issue_without_repository(self, client, endpoint):
        """Should return 400 without exchanging a token when fields are missing."""
        payload = {key: value for key, value in ISSUE_OPENED.items() if key != "repository"}

        response = post_webhook(client, payload, "issues")

        assert response.status_code == 400
        assert "repository" in response.json()["message"]
        assert endpoint.requests == []

    def test_issue_without_installation(self, client, endpoint):
        """Should return 400 when the payload names no installation."""
        payload = {key: value for key, value in ISSUE_OPENED.items() if key != "installation"}

        response = post_webhook(client, payload, "issues")

        assert response.status_code == 400
        assert endpoint.requests == []


class TestWebhookLogging:
    """Tests for rejection logging."""

    def test_mismatch_logged_once(self, client, caplog):
        """Should log a signature mismatch a single time."""
        with caplog.at_level(logging.WARNING):
            response = post_webhook(client, {"zen": "x"}, "ping", secret=b"other")

        assert response.status_code == 401
        mismatches = [r for r in caplog.records if "Signature does not match body" in r.getMessage()]
        assert len(mismatches) == 1
        assert "test-secret" not in caplog.text

    def test_malformed_header_logged(self, client, caplog):
        """Should log rejections the verifier does not log itself."""
        with caplog.at_level(logging.WARNING):
            response = client.post("/webhook", json={"action": "test"})

        assert response.status_code == 401
        assert "MalformedSignatureHeader" in caplog.text
