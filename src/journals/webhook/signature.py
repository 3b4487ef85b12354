"""GitHub webhook signature verification.

GitHub signs every delivery with the shared webhook secret and sends the
signature in the ``x-hub-signature`` header:

    x-hub-signature: sha1=<hex HMAC-SHA1 of the raw request body>

Verification must run on the raw body bytes before any JSON parsing, since
re-encoding the payload changes the byte sequence.
"""

import hashlib
import hmac
import logging
from typing import Optional, Union


logger = logging.getLogger(__name__)


HUB_SIGNATURE_ALGORITHM = "sha1"


class ConfigurationError(Exception):
    """Raised when the webhook secret is not configured.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationError(Exception):
    """Raised when a delivery carries no signature or a wrong one.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def _to_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def create_hub_signature(secret: Union[str, bytes], body: Union[str, bytes]) -> str:
    """Compute the ``x-hub-signature`` value for a body.

    Args:
        secret: The shared webhook secret.
        body: The raw request body.

    Returns:
        ``"sha1=" + hex(HMAC-SHA1(secret, body))``
    """
    mac = hmac.new(_to_bytes(secret), msg=_to_bytes(body), digestmod=hashlib.sha1)
    return f"{HUB_SIGNATURE_ALGORITHM}={mac.hexdigest()}"


def digests_equal(a: Union[str, bytes], b: Union[str, bytes]) -> bool:
    """Compare two digests in constant time.

    Digests of different length are rejected immediately.
    """
    a_bytes = _to_bytes(a)
    b_bytes = _to_bytes(b)
    return len(a_bytes) == len(b_bytes) and hmac.compare_digest(a_bytes, b_bytes)


def verify_hub_signature(
    secret: Optional[Union[str, bytes]],
    signature_header: Optional[str],
    raw_body: bytes,
) -> None:
    """Verify the signature of a webhook delivery.

    Args:
        secret: The configured webhook secret.
        signature_header: Value of the ``x-hub-signature`` header.
        raw_body: The unparsed request body.

    Raises:
        ConfigurationError: If no webhook secret is configured.
        AuthenticationError: If the header is missing or does not match.
    """
    if not secret:
        raise ConfigurationError("Webhook secret is not configured")

    if not signature_header:
        raise AuthenticationError("Header 'x-hub-signature' not provided")

    expected = create_hub_signature(secret, raw_body)
    if not digests_equal(signature_header.strip(), expected):
        raise AuthenticationError("Signatures didn't match")
