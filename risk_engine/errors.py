"""
Error Taxonomy

Every failure raised by the engine is a subclass of RiskEngineError.
The ``retryable`` flag tells callers whether repeating the same call
(after backoff) can succeed:

- Card validation errors: caller must correct the input
- Crypto errors: tampering or wrong key
- Dependency errors: a collaborator failed or timed out
- Configuration errors: rejected before the swap, prior config stays active
- Security gate errors: auth/signature are final, rate limits are retryable
"""

from typing import Optional


class RiskEngineError(Exception):
    """Base class for all engine errors."""

    code = "RISK_ENGINE_ERROR"
    retryable = False

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code


# =============================================================================
# Card validation
# =============================================================================

class CardValidationError(RiskEngineError):
    """Card data failed validation."""

    code = "CARD_VALIDATION_FAILED"


class InvalidCardNumber(CardValidationError):
    """Invalid card number."""

    code = "INVALID_CARD_NUMBER"


class InvalidExpiryDate(CardValidationError):
    """Invalid expiry date."""

    code = "INVALID_EXPIRY_DATE"


class InvalidCVV(CardValidationError):
    """Invalid CVV."""

    code = "INVALID_CVV"


class FraudulentCard(CardValidationError):
    """Card is on the known-fraud deny-list."""

    code = "FRAUDULENT_CARD"


# =============================================================================
# Cryptography
# =============================================================================

class CryptoError(RiskEngineError):
    """Cryptographic operation failed."""

    code = "CRYPTO_ERROR"


class EncryptionFailed(CryptoError):
    """Encryption failed."""

    code = "ENCRYPTION_FAILED"


class DecryptionFailed(CryptoError):
    """Decryption failed."""

    code = "DECRYPTION_FAILED"


# =============================================================================
# Tokenization
# =============================================================================

class TokenizationError(RiskEngineError):
    """Tokenization failed."""

    code = "TOKENIZATION_FAILED"


class TokenStorageFailed(TokenizationError):
    """Encrypted card data could not be stored."""

    code = "TOKEN_STORAGE_FAILED"
    retryable = True


class TokenNotFound(TokenizationError):
    """Token does not exist."""

    code = "TOKEN_NOT_FOUND"


# =============================================================================
# Collaborators and configuration
# =============================================================================

class DependencyUnavailable(RiskEngineError):
    """A collaborator call failed or timed out."""

    code = "DEPENDENCY_UNAVAILABLE"
    retryable = True

    def __init__(self, dependency: str, message: Optional[str] = None):
        self.dependency = dependency
        super().__init__(message or f"Dependency unavailable: {dependency}")


class ConfigurationError(RiskEngineError):
    """Configuration was rejected."""

    code = "INVALID_CONFIGURATION"


# =============================================================================
# Request security
# =============================================================================

class SecurityError(RiskEngineError):
    """Request failed the security gate."""

    code = "SECURITY_ERROR"


class AuthenticationFailed(SecurityError):
    """Authentication failed."""

    code = "AUTHENTICATION_FAILED"


class InvalidSignature(SecurityError):
    """Invalid request signature."""

    code = "INVALID_SIGNATURE"


class RateLimitExceeded(SecurityError):
    """Rate limit exceeded."""

    code = "RATE_LIMIT_EXCEEDED"
    retryable = True

    def __init__(self, retry_after: float = 1.0, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message)
