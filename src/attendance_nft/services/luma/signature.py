"""HMAC signature validation for Luma check-in webhooks.

Uses HMAC-SHA256 over the raw request body with constant-time comparison.
"""

import hashlib
import hmac


def validate_luma_signature(raw_body: bytes, signature: str, signing_key: str) -> bool:
    """Validate a Luma webhook signature.

    Args:
        raw_body: Raw request body bytes, exactly as received (not parsed JSON)
        signature: Hex-encoded HMAC-SHA256 from the X-Luma-Signature header.
            An optional "sha256=" prefix is accepted.
        signing_key: Webhook signing secret configured for the Luma calendar

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature or not signing_key:
        return False

    expected = hmac.new(
        key=signing_key.encode("utf-8"), msg=raw_body, digestmod=hashlib.sha256
    ).hexdigest()

    provided = signature.strip().lower()
    if provided.startswith("sha256="):
        provided = provided[len("sha256=") :]

    return hmac.compare_digest(expected.encode("ascii"), provided.encode("utf-8"))
