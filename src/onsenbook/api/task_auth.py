"""Authentication of scheduler / worker task calls.

Task endpoints (the expiry sweep, the ledger horizon top-up) are called by an
external scheduler with a Google-signed OIDC identity token. For local
development, when TASKS_OIDC_AUDIENCE is "onsenbook-tasks-local", a shared
secret in X-Internal-Task-Secret is accepted instead.

Fail closed: without TASKS_OIDC_AUDIENCE nothing authenticates.
"""

from __future__ import annotations

import os

from fastapi import HTTPException, Request
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from onsenbook.observability.correlation import get_correlation_id
from onsenbook.observability.logging import get_logger
from onsenbook.observability.redaction import safe_log_context

logger = get_logger(__name__)

LOCAL_DEV_AUDIENCE = "onsenbook-tasks-local"
INTERNAL_SECRET_HEADER = "X-Internal-Task-Secret"


def bearer_token(request: Request) -> str | None:
    """Token of an "Authorization: Bearer <token>" header, else None."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def verify_oidc_token(token: str, *, audience: str) -> bool:
    """Check signature, expiry and audience of a Google identity token.

    When TASKS_OIDC_SERVICE_ACCOUNT is set, the token's email claim must match.
    """
    try:
        claims = id_token.verify_oauth2_token(
            token, google_requests.Request(), audience=audience
        )
    except ValueError as exc:
        logger.warning(
            "task token rejected",
            extra={"extra_fields": safe_log_context(error=str(exc), audience=audience)},
        )
        return False

    expected_email = os.environ.get("TASKS_OIDC_SERVICE_ACCOUNT")
    if expected_email and claims.get("email") != expected_email:
        logger.warning(
            "task token from unexpected service account",
            extra={"extra_fields": safe_log_context(reason="service_account_mismatch")},
        )
        return False
    return True


def is_task_request_authenticated(request: Request) -> bool:
    audience = os.environ.get("TASKS_OIDC_AUDIENCE", "")
    if not audience:
        logger.error(
            "TASKS_OIDC_AUDIENCE not configured, rejecting task call",
            extra={"extra_fields": safe_log_context(reason="missing_audience_env")},
        )
        return False

    if audience == LOCAL_DEV_AUDIENCE:
        secret = os.environ.get("INTERNAL_TASK_SECRET", "")
        if secret and request.headers.get(INTERNAL_SECRET_HEADER, "") == secret:
            return True

    token = bearer_token(request)
    if token is None:
        logger.warning(
            "task call without bearer token",
            extra={"extra_fields": safe_log_context(reason="missing_bearer_token")},
        )
        return False
    return verify_oidc_token(token, audience=audience)


def require_task_auth(request: Request) -> None:
    """FastAPI dependency for worker task routes.

    Raises:
        HTTPException: 401 when the caller is not an authenticated scheduler.
    """
    if not is_task_request_authenticated(request):
        logger.warning(
            "task auth failed",
            extra={"extra_fields": safe_log_context(correlationId=get_correlation_id())},
        )
        raise HTTPException(status_code=401, detail="Unauthorized")
