"""
Request Signing

HMAC-SHA256 signatures over the request, sent as
``X-Signature: t=<unix timestamp>,v1=<hex digest>``.

Signed bytes: ``"<t>.<METHOD>.<path>." + body``

The timestamp is part of the signed data and must be within the
tolerance window, which bounds replay of captured requests.
"""

import hashlib
import hmac
import time
from typing import Callable, Optional

from ..errors import InvalidSignature
from ..schemas import RequestMeta

SIGNATURE_SCHEME = "v1"


def compute_signature(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def parse_signature_header(header: str) -> tuple[int, str]:
    """
    Split a signature header into (timestamp, digest).

    Raises:
        InvalidSignature: header is malformed
    """
    try:
        parts = dict(part.strip().split("=", 1) for part in header.split(","))
        return int(parts["t"]), parts[SIGNATURE_SCHEME]
    except (KeyError, ValueError) as e:
        raise InvalidSignature("Malformed signature header") from e


class RequestSigner:
    """Create and verify request signatures."""

    def __init__(
        self,
        tolerance_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            tolerance_seconds: How old (or far in the future) a signature may be
            clock: Returns the current unix time; injected for tests
        """
        self.tolerance_seconds = tolerance_seconds
        self.clock = clock

    def sign(self, secret: str, request: RequestMeta, timestamp: Optional[int] = None) -> str:
        """Build the signature header value for a request."""
        if timestamp is None:
            timestamp = int(self.clock())
        digest = compute_signature(secret, request.signing_payload(timestamp))
        return f"t={timestamp},{SIGNATURE_SCHEME}={digest}"

    def verify(self, secret: str, request: RequestMeta) -> None:
        """
        Verify the request's signature header.

        Raises:
            InvalidSignature: missing, malformed, stale or mismatched signature
        """
        if not request.signature:
            raise InvalidSignature("Missing request signature")

        timestamp, provided = parse_signature_header(request.signature)

        if abs(int(self.clock()) - timestamp) > self.tolerance_seconds:
            raise InvalidSignature("Signature timestamp outside tolerance window")

        expected = compute_signature(secret, request.signing_payload(timestamp))
        if not hmac.compare_digest(expected, provided):
            raise InvalidSignature("Signature does not match payload")
