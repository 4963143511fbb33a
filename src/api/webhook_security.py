"""
Shopify webhook signature verification.
Shopify signs the raw request body with HMAC-SHA256 and sends the base64
digest in the X-Shopify-Hmac-Sha256 header.
"""
import base64
import hashlib
import hmac
import logging

logger = logging.getLogger("duplicate_guard.api")


def validate_shopify_hmac(payload: bytes, signature: str, secret: str) -> bool:
    """
    Validate a Shopify webhook signature.

    Args:
        payload: Raw request body
        signature: Value of the X-Shopify-Hmac-Sha256 header
        secret: Webhook signing secret of the app

    Returns:
        True if the signature matches, or if no secret is configured
    """
    if not secret:
        logger.warning("Webhook secret not configured, skipping signature validation")
        return True

    if not signature:
        return False

    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    return hmac.compare_digest(signature.strip(), expected)
