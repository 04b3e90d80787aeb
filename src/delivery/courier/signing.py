"""HMAC-SHA256 signing for courier requests and webhook callbacks."""

import hashlib
import hmac


def sign_request(secret: str, method: str, path: str, body: str, timestamp: int | str) -> str:
    """Signature over ``"{ts}\\r\\n{METHOD}\\r\\n{path}\\r\\n\\r\\n{body}"``."""
    raw = f"{timestamp}\r\n{method.upper()}\r\n{path}\r\n\r\n{body}"
    return hmac.new(secret.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).hexdigest()


def sign_webhook(secret: str, timestamp: int | str, body: str) -> str:
    """Signature over ``"{ts}\\r\\n{body}"``."""
    raw = f"{timestamp}\r\n{body}"
    return hmac.new(secret.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_webhook(secret: str, timestamp: int | str, body: str, signature: str) -> bool:
    if not secret or not signature or timestamp in (None, ""):
        return False
    expected = sign_webhook(secret, timestamp, body)
    return hmac.compare_digest(expected, signature)
