"""FastAPI application receiving GitHub App webhooks.

Verifies each delivery, then acts on behalf of the installation it came from.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hubauth.config import AuthConfig, get_auth_config, get_settings
from hubauth.context import WebhookContext
from hubauth.credentials import CredentialIssuer
from hubauth.errors import (
    AssertionExpired,
    ConfigurationError,
    HubAuthError,
    InstallationNotFound,
    MalformedPayload,
    SignatureError,
    SignatureMismatch,
    TokenExchangeFailed,
    TransientNetworkError,
)
from hubauth.schemas import WebhookRequest
from hubauth.signature import SignatureVerifier

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

ISSUE_COMMENT_BODY = "Hello from my GitHubApp Installation!"

# Most specific first
ERROR_STATUS_CODES: list[tuple[type[HubAuthError], int]] = [
    (SignatureError, 401),
    (MalformedPayload, 400),
    (InstallationNotFound, 404),
    (TokenExchangeFailed, 502),
    (TransientNetworkError, 503),
    (AssertionExpired, 500),
    (ConfigurationError, 500),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"Environment: {settings.environment}")
    # Fail fast on a bad app id or private key
    get_auth_config()
    yield
    logger.info("Shutting down")


app = FastAPI(
    title="hubauth",
    description="GitHub App webhook verification and installation authentication",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(HubAuthError)
async def hubauth_error_handler(request: Request, exc: HubAuthError) -> JSONResponse:
    """Map core failures to HTTP responses."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES if isinstance(exc, error_type)),
        500,
    )
    if isinstance(exc, SignatureError):
        message = "Signature verification failed"
    else:
        message = str(exc)
    # Mismatches are already logged by the verifier
    if not isinstance(exc, SignatureMismatch):
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
    return JSONResponse(
        content={"status": "error", "error": type(exc).__name__, "message": message},
        status_code=status_code,
    )


def build_verifier(config: AuthConfig) -> SignatureVerifier:
    """Build the signature verifier from the process-wide configuration."""
    return SignatureVerifier(
        config.webhook_secret.get_secret_value(),
        algorithm=config.signature_algorithm,
        normalize_line_endings=config.normalize_line_endings,
    )


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "app": "hubauth", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


async def comment_on_opened_issue(context: WebhookContext) -> dict[str, Any]:
    """Post a greeting on a newly opened issue as the installation.

    Args:
        context: Verified webhook context

    Returns:
        Created comment as returned by GitHub
    """
    data = context.data
    try:
        issue_number = data["issue"]["number"]
        owner = data["repository"]["owner"]["login"]
        repo = data["repository"]["name"]
    except (KeyError, TypeError) as e:
        raise MalformedPayload(f"issues event is missing {e}") from e

    async with await context.get_installation_client() as client:
        response = await client.post(
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            json={"body": ISSUE_COMMENT_BODY},
        )
        response.raise_for_status()
        comment = response.json()

    logger.info(f"Commented on {owner}/{repo}#{issue_number}")
    return comment


@app.post("/webhook")
async def webhook(request: Request):
    """Handle GitHub webhook events.

    Verifies the signature before the payload is looked at.
    """
    # The body stream is single-read: buffer it once and share the buffer
    body = await request.body()
    config = get_auth_config()
    verifier = build_verifier(config)

    hook = WebhookRequest(
        body=body,
        signature=request.headers.get(verifier.header_name),
        event=request.headers.get("X-GitHub-Event", ""),
        delivery=request.headers.get("X-GitHub-Delivery"),
    )
    context = WebhookContext(hook, verifier, CredentialIssuer(config))
    context.verify()

    logger.info(f"Received webhook: {hook.event or 'unknown'} (delivery: {hook.delivery or 'unknown'})")

    # Handle ping event (sent when webhook is first configured)
    if context.is_event("ping"):
        zen = context.data.get("zen", "")
        hook_id = context.data.get("hook_id", "")
        logger.info(f"Webhook ping received: {zen} (hook_id: {hook_id})")
        return {"status": "pong", "zen": zen}

    if context.is_event("issues") and context.is_action("opened"):
        await comment_on_opened_issue(context)
        return {"status": "success", "event": hook.event}

    return {"status": "no action", "event": hook.event}


@app.post("/webhook/github")
async def webhook_github(request: Request):
    """Alternative webhook endpoint for GitHub."""
    return await webhook(request)


def run():
    """Run the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    log_level = settings.log_level.lower()

    uvicorn.run(
        "hubauth.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=log_level,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":
    run()
