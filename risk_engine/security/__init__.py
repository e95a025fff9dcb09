# Request security gate
from .credentials import CredentialStore, StaticCredentialStore
from .signing import RequestSigner, compute_signature, parse_signature_header
from .rate_limit import RateLimiter, TokenBucketRateLimiter, RedisRateLimiter
from .validator import RequestSecurityValidator

__all__ = [
    "CredentialStore",
    "StaticCredentialStore",
    "RequestSigner",
    "compute_signature",
    "parse_signature_header",
    "RateLimiter",
    "TokenBucketRateLimiter",
    "RedisRateLimiter",
    "RequestSecurityValidator",
]
