"""
Orchestrator Request Signing
HMAC-SHA256 over timestamp, nonce, method, path and body hash
"""

import hashlib
import hmac
import secrets
import time
from typing import Dict, Optional

from agent_console.core.config import settings
from agent_console.core.logging import get_logger

logger = get_logger(__name__)

TIMESTAMP_HEADER = "X-Timestamp"
NONCE_HEADER = "X-Nonce"
SIGNATURE_HEADER = "X-Signature"


def hash_body(body: str) -> str:
    """SHA-256 hex digest of the request body"""
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


def compute_signature(
    api_key: str,
    method: str,
    path: str,
    body: str,
    timestamp: str,
    nonce: str
) -> str:
    """Compute the hex HMAC for a request"""
    message = f"{timestamp}{nonce}{method.upper()}{path}{hash_body(body)}"
    return hmac.new(
        api_key.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256
    ).hexdigest()


def sign_request(
    method: str,
    path: str,
    body: str,
    api_key: str,
    timestamp: Optional[str] = None,
    nonce: Optional[str] = None
) -> Dict[str, str]:
    """
    Build signed headers for an orchestrator request

    Args:
        method: HTTP method
        path: Request path including any query string
        body: Serialized JSON body; empty for GET and DELETE
        api_key: Shared signing key
        timestamp: Unix seconds (generated when omitted)
        nonce: Random token (generated when omitted)

    Returns:
        Headers to send with the request
    """
    if method.upper() in ("GET", "DELETE"):
        body = ""

    timestamp = timestamp or str(int(time.time()))
    nonce = nonce or secrets.token_urlsafe(24)

    return {
        TIMESTAMP_HEADER: timestamp,
        NONCE_HEADER: nonce,
        SIGNATURE_HEADER: compute_signature(api_key, method, path, body, timestamp, nonce),
        "Content-Type": "application/json"
    }


def verify_signature(
    headers: Dict[str, str],
    method: str,
    path: str,
    body: str,
    api_key: str,
    now: Optional[float] = None,
    max_skew_seconds: Optional[int] = None
) -> bool:
    """Check signed headers the way the orchestrator does"""
    timestamp = headers.get(TIMESTAMP_HEADER)
    nonce = headers.get(NONCE_HEADER)
    signature = headers.get(SIGNATURE_HEADER)
    if not (timestamp and nonce and signature):
        logger.warning("Missing signature headers")
        return False

    skew = settings.signature_max_skew_seconds if max_skew_seconds is None else max_skew_seconds
    try:
        age = abs((now if now is not None else time.time()) - int(timestamp))
    except ValueError:
        return False
    if age > skew:
        logger.warning("Signed request outside allowed clock skew", age_seconds=int(age))
        return False

    if method.upper() in ("GET", "DELETE"):
        body = ""
    expected = compute_signature(api_key, method, path, body, timestamp, nonce)
    return hmac.compare_digest(signature, expected)
