"""
Fraud Detection Service

Single entry point composing the engine:

    validate -> (parallel analyzers) -> join -> score

Operations:
- validate_card / encrypt_card / decrypt_card / tokenize_card / revoke_token
- analyze_fraud_risk (plus standalone device and behavioural risk)
- update_fraud_config / update_risk_policy / reload_policy
- validate_request (security gate)

All collaborators are injected; create_service() wires them from settings.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional, Union

import redis.asyncio as redis

from .config import Settings
from .crypto import (
    CardCipher,
    CardTokenizer,
    InMemoryTokenVault,
    PostgresTokenVault,
    RedisTokenVault,
    StaticKeyStore,
    TokenVault,
)
from .datasources import (
    InMemoryBehaviorStore,
    InMemoryDenyList,
    InMemoryDeviceReputation,
    InMemoryLocationHistory,
    InMemoryTransactionHistory,
    RedisBehaviorStore,
    RedisDenyList,
    RedisDeviceReputation,
    RedisLocationHistory,
    RedisTransactionHistory,
)
from .detection import (
    AmountPatternAnalyzer,
    BehavioralAnalyzer,
    CardPatternAnalyzer,
    DetectionEngine,
    DeviceAnalyzer,
    GeolocationAnalyzer,
    VelocityAnalyzer,
    behavioral_factors,
    device_factors,
)
from .errors import ConfigurationError, DependencyUnavailable
from .metrics import metrics
from .policy import (
    ConfigStore,
    DetectionSnapshot,
    FraudDetectionConfiguration,
    RiskPolicy,
    load_policy_file,
)
from .schemas import (
    BehavioralRisk,
    CardData,
    CardToken,
    CardValidationResult,
    DeviceFingerprint,
    DeviceRisk,
    EncryptedCardData,
    FraudFactor,
    FraudRisk,
    FraudRiskLevel,
    PaymentContext,
    RequestMeta,
    UserBehavior,
)
from .scoring import RiskScorer
from .security import (
    RedisRateLimiter,
    RequestSecurityValidator,
    RequestSigner,
    StaticCredentialStore,
    TokenBucketRateLimiter,
)
from .validation import CardValidator

logger = logging.getLogger("risk_engine.service")


class FraudDetectionService:
    """Payment risk engine facade."""

    def __init__(
        self,
        validator: CardValidator,
        cipher: CardCipher,
        tokenizer: CardTokenizer,
        engine: DetectionEngine,
        config_store: ConfigStore,
        security: RequestSecurityValidator,
        scorer: Optional[RiskScorer] = None,
        analysis_timeout: Optional[float] = None,
        redis_client: Optional[redis.Redis] = None,
    ):
        """
        Initialize service.

        Args:
            validator: Card validator (with deny-list)
            cipher: Card cipher bound to the process key store
            tokenizer: Token issuance over the token vault
            engine: Analyzer fan-out
            config_store: Active detection snapshot
            security: Request security gate
            scorer: Score aggregation
            analysis_timeout: Default timeout for analyze_fraud_risk (seconds)
            redis_client: Shared client, closed on shutdown
        """
        self.validator = validator
        self.cipher = cipher
        self.tokenizer = tokenizer
        self.engine = engine
        self.config_store = config_store
        self.security = security
        self.scorer = scorer or RiskScorer()
        self.analysis_timeout = analysis_timeout
        self.redis_client = redis_client

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def vault(self) -> TokenVault:
        return self.tokenizer.vault

    async def startup(self) -> None:
        """Open connections that need an event loop."""
        if isinstance(self.vault, PostgresTokenVault):
            await self.vault.initialize()
            await self.vault.create_schema()

    async def shutdown(self) -> None:
        if isinstance(self.vault, PostgresTokenVault):
            await self.vault.close()
        if self.redis_client is not None:
            await self.redis_client.aclose()

    # =========================================================================
    # Cards
    # =========================================================================

    async def validate_card(self, card: CardData) -> CardValidationResult:
        """
        Validate a card including the known-fraud lookup.

        Raises:
            InvalidCardNumber, InvalidExpiryDate, InvalidCVV, FraudulentCard,
            DependencyUnavailable
        """
        return await self.validator.validate(card)

    async def encrypt_card(self, card: CardData) -> EncryptedCardData:
        """Encrypt a card. Invalid cards never reach the cipher."""
        await self.validator.validate(card)
        return self.cipher.encrypt(card)

    def decrypt_card(self, encrypted: EncryptedCardData) -> CardData:
        return self.cipher.decrypt(encrypted)

    async def tokenize_card(self, card: CardData) -> CardToken:
        return await self.tokenizer.tokenize(card)

    async def revoke_token(self, token_id: str) -> CardToken:
        return await self.tokenizer.revoke(token_id)

    # =========================================================================
    # Risk analysis
    # =========================================================================

    async def analyze_fraud_risk(
        self,
        context: PaymentContext,
        timeout: Optional[float] = None,
    ) -> FraudRisk:
        """
        Analyze a payment.

        The configuration snapshot is read once, so a concurrent update
        never mixes old and new thresholds within one call.

        Args:
            context: Payment to analyze
            timeout: Overrides the default analysis timeout

        Raises:
            InvalidCardNumber, InvalidExpiryDate, InvalidCVV: card data is
                structurally invalid (no scoring happens)
            DependencyUnavailable: a collaborator failed or the analysis
                exceeded the timeout
        """
        snapshot = self.config_store.current()

        # Deny-list hits are scored by the card pattern analyzer instead
        if context.card_data is not None:
            self.validator.check_card(context.card_data)

        if not snapshot.config.enabled:
            return self._build_risk(context, snapshot, [], 0.0, FraudRiskLevel.LOW)

        start_time = time.perf_counter()
        limit = timeout if timeout is not None else self.analysis_timeout
        try:
            factors = await asyncio.wait_for(
                self.engine.run_detection(context, snapshot),
                timeout=limit,
            )
        except asyncio.TimeoutError as e:
            metrics.dependency_failures.labels(dependency="analysis").inc()
            logger.error("Risk analysis for %s exceeded %ss", context.payment_id, limit)
            raise DependencyUnavailable("analysis", f"Risk analysis exceeded {limit}s") from e

        score, level = self.scorer.score(factors, snapshot.thresholds)
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        metrics.analysis_latency.observe(elapsed_ms)
        metrics.risk_score_distribution.observe(score)
        metrics.assessments_total.labels(level=level.value).inc()
        for factor in factors:
            metrics.factor_triggers.labels(factor_type=factor.type.value).inc()

        logger.info(
            "Payment %s scored %.1f (%s) from %d factors in %.1fms [config v%d]",
            context.payment_id,
            score,
            level.value,
            len(factors),
            elapsed_ms,
            snapshot.version,
        )
        return self._build_risk(context, snapshot, factors, score, level)

    @staticmethod
    def _build_risk(
        context: PaymentContext,
        snapshot: DetectionSnapshot,
        factors: list[FraudFactor],
        score: float,
        level: FraudRiskLevel,
    ) -> FraudRisk:
        return FraudRisk(
            level=level,
            score=score,
            factors=factors,
            payment_id=context.payment_id,
            sensitivity=snapshot.config.sensitivity,
            config_version=snapshot.version,
            policy_hash=snapshot.policy_hash,
        )

    def analyze_device_risk(self, fingerprint: DeviceFingerprint) -> DeviceRisk:
        """Score a device on its own with the current policy and thresholds."""
        snapshot = self.config_store.current()
        factors = device_factors(fingerprint, snapshot.policy)
        score, level = self.scorer.score(factors, snapshot.thresholds)
        return DeviceRisk(level=level, score=score, factors=factors, device=fingerprint)

    def analyze_behavioral_risk(self, behavior: UserBehavior) -> BehavioralRisk:
        snapshot = self.config_store.current()
        factors = behavioral_factors(behavior, snapshot.policy)
        score, level = self.scorer.score(factors, snapshot.thresholds)
        return BehavioralRisk(level=level, score=score, factors=factors, behavior=behavior)

    # =========================================================================
    # Configuration
    # =========================================================================

    def current_config(self) -> DetectionSnapshot:
        return self.config_store.current()

    def update_fraud_config(
        self,
        config: Union[FraudDetectionConfiguration, dict],
    ) -> DetectionSnapshot:
        """Apply a new configuration to subsequent analyses (atomic swap)."""
        return self.config_store.update(config)

    def update_risk_policy(self, policy: Union[RiskPolicy, dict]) -> DetectionSnapshot:
        return self.config_store.update_policy(policy)

    def reload_policy(self, path: Optional[Union[str, Path]] = None) -> DetectionSnapshot:
        return self.config_store.reload_policy(path)

    # =========================================================================
    # Request security
    # =========================================================================

    async def validate_request(self, request: RequestMeta) -> None:
        await self.security.validate(request)


# =============================================================================
# Wiring
# =============================================================================

def _build_keystore(settings: Settings) -> StaticKeyStore:
    if settings.card_encryption_key:
        return StaticKeyStore.from_base64(
            settings.card_encryption_key,
            key_id=settings.card_encryption_key_id,
        )
    logger.warning(
        "CARD_ENCRYPTION_KEY not set; using an ephemeral key. "
        "Encrypted card data will not survive a restart."
    )
    return StaticKeyStore.generate(key_id=settings.card_encryption_key_id)


def _build_redis(settings: Settings) -> redis.Redis:
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        password=settings.redis_password,
        decode_responses=True,
    )


def create_service(settings: Settings) -> FraudDetectionService:
    """
    Build a service from settings.

    Raises:
        ConfigurationError: inconsistent settings (e.g. redis deny-list
            without DENY_LIST_HASH_KEY, or an invalid policy file)
    """
    needs_redis = settings.datasource_backend == "redis" or settings.token_vault_backend == "redis"
    redis_client = _build_redis(settings) if needs_redis else None
    prefix = settings.redis_key_prefix
    timeout = settings.collaborator_timeout_seconds

    # Collaborators
    if settings.datasource_backend == "redis":
        if not settings.deny_list_hash_key:
            raise ConfigurationError("DENY_LIST_HASH_KEY is required for the redis deny-list")
        history = RedisTransactionHistory(redis_client, key_prefix=prefix)
        locations = RedisLocationHistory(redis_client, key_prefix=prefix)
        devices = RedisDeviceReputation(redis_client, key_prefix=prefix)
        behavior = RedisBehaviorStore(redis_client, key_prefix=prefix)
        deny_list = RedisDenyList(redis_client, settings.deny_list_hash_key, key_prefix=prefix)
        rate_limiter = RedisRateLimiter(
            redis_client,
            limit=settings.rate_limit_capacity,
            window_seconds=settings.rate_limit_window_seconds,
            key_prefix=prefix,
        )
    else:
        history = InMemoryTransactionHistory()
        locations = InMemoryLocationHistory()
        devices = InMemoryDeviceReputation()
        behavior = InMemoryBehaviorStore()
        deny_list = InMemoryDenyList()
        rate_limiter = TokenBucketRateLimiter(
            capacity=settings.rate_limit_capacity,
            refill_per_second=settings.rate_limit_refill_per_second,
        )

    if settings.token_vault_backend == "postgres":
        vault = PostgresTokenVault(settings.postgres_url, echo=settings.app_debug)
    elif settings.token_vault_backend == "redis":
        vault = RedisTokenVault(redis_client, key_prefix=prefix)
    else:
        vault = InMemoryTokenVault()

    # Core components
    validator = CardValidator(deny_list=deny_list)
    cipher = CardCipher(_build_keystore(settings))
    tokenizer = CardTokenizer(validator, cipher, vault)
    engine = DetectionEngine([
        VelocityAnalyzer(history, timeout=timeout),
        GeolocationAnalyzer(locations, timeout=timeout),
        DeviceAnalyzer(devices, deny_list=deny_list, timeout=timeout),
        BehavioralAnalyzer(behavior, timeout=timeout),
        CardPatternAnalyzer(deny_list, timeout=timeout),
        AmountPatternAnalyzer(timeout=timeout),
    ])

    policy = None
    if settings.risk_policy_path and Path(settings.risk_policy_path).exists():
        policy = load_policy_file(settings.risk_policy_path)
        logger.info("Loaded risk policy %s from %s", policy.version, settings.risk_policy_path)

    config_store = ConfigStore(
        config=FraudDetectionConfiguration(
            enabled=settings.fraud_detection_enabled,
            sensitivity=settings.fraud_sensitivity,
        ),
        policy=policy,
        policy_path=settings.risk_policy_path,
    )

    security = RequestSecurityValidator(
        credentials=StaticCredentialStore(settings.api_credentials),
        signer=RequestSigner(tolerance_seconds=settings.signature_tolerance_seconds),
        rate_limiter=rate_limiter,
    )

    return FraudDetectionService(
        validator=validator,
        cipher=cipher,
        tokenizer=tokenizer,
        engine=engine,
        config_store=config_store,
        security=security,
        analysis_timeout=settings.analysis_timeout_seconds,
        redis_client=redis_client,
    )
