"""
Security utilities: token encryption, webhook and OAuth signature checks.
"""
import base64
import hashlib
import hmac
import re
import secrets
from collections.abc import Mapping

from cryptography.fernet import Fernet, InvalidToken

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

SHOP_DOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]*\.myshopify\.com$")


def derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet-compatible key from the encryption key."""
    key = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(key)


# Token encryption
_fernet = Fernet(derive_fernet_key(settings.encryption_key))


def encrypt_token(token: str) -> str:
    """Encrypt a token for secure storage."""
    return _fernet.encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt a stored token."""
    try:
        return _fernet.decrypt(encrypted_token.encode()).decode()
    except InvalidToken as e:
        logger.error("Failed to decrypt token", error=type(e).__name__)
        raise ValueError("Invalid encrypted token") from e


def compute_webhook_hmac(body: bytes, secret: str) -> str:
    """Base64 HMAC-SHA256 of a raw webhook body, as Shopify sends it."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def verify_webhook_hmac(hmac_header: str | None, body: bytes) -> bool:
    """Verify Shopify webhook HMAC signature over the exact raw body."""
    if not settings.shopify_api_secret:
        logger.warning("Shopify API secret not configured, rejecting webhook")
        return False
    if not hmac_header or not hmac_header.isascii():
        return False

    computed = compute_webhook_hmac(body, settings.shopify_api_secret)
    return hmac.compare_digest(computed.encode(), hmac_header.encode())


def compute_oauth_hmac(params: Mapping[str, str], secret: str) -> str:
    """Hex HMAC-SHA256 over the sorted query string, excluding the signature params."""
    message = "&".join(
        f"{key}={value}"
        for key, value in sorted(params.items())
        if key not in ("hmac", "signature")
    )
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_oauth_hmac(params: Mapping[str, str]) -> bool:
    """Verify the `hmac` query parameter Shopify attaches to OAuth redirects."""
    if not settings.shopify_api_secret:
        logger.warning("Shopify API secret not configured, rejecting OAuth callback")
        return False

    provided = params.get("hmac")
    if not provided or not provided.isascii():
        return False

    computed = compute_oauth_hmac(params, settings.shopify_api_secret)
    return hmac.compare_digest(computed.encode(), provided.encode())


def is_valid_shop_domain(domain: str | None) -> bool:
    """Only accept `<name>.myshopify.com` hostnames."""
    return bool(domain) and SHOP_DOMAIN_PATTERN.match(domain) is not None


def generate_nonce() -> str:
    """Generate an OAuth state value."""
    return secrets.token_urlsafe(16)
