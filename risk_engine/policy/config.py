"""
Fraud Detection Configuration

The active configuration is an immutable DetectionSnapshot. Every
analysis call reads the snapshot reference once and uses it for the whole
pipeline, so a concurrent update is seen either entirely or not at all.

Updates build and validate a new snapshot first and then swap the
reference under a lock (last writer wins). A rejected update leaves the
previous snapshot active.
"""

import hashlib
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer

from ..errors import ConfigurationError
from ..metrics import metrics
from ..schemas import FraudSensitivity
from .rules import DEFAULT_POLICY, FraudRule, RiskPolicy
from .thresholds import ThresholdTable

logger = logging.getLogger("risk_engine.policy")


class FraudDetectionConfiguration(BaseModel):
    """Runtime switches for fraud detection."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(
        default=True,
        description="When false no analyzers run and every payment scores 0",
    )
    sensitivity: FraudSensitivity = Field(
        default=FraudSensitivity.MEDIUM,
        description="Selects the threshold table",
    )
    rules: frozenset[FraudRule] = Field(
        default_factory=lambda: frozenset(FraudRule),
        description="Analyzers that run",
    )
    threshold_override: Optional[ThresholdTable] = Field(
        default=None,
        description="Replaces the policy's table for the selected sensitivity",
    )

    @field_serializer("rules")
    def serialize_rules(self, rules: frozenset[FraudRule]) -> list[str]:
        return sorted(rule.value for rule in rules)


@dataclass(frozen=True)
class DetectionSnapshot:
    """Everything an analysis call needs from configuration."""
    config: FraudDetectionConfiguration
    policy: RiskPolicy
    thresholds: ThresholdTable
    version: int
    policy_hash: str

    def rule_enabled(self, rule: FraudRule) -> bool:
        return self.config.enabled and rule in self.config.rules


def compute_hash(config: FraudDetectionConfiguration, policy: RiskPolicy) -> str:
    """Short content hash of a configuration for audit."""
    payload = json.dumps(
        {
            "config": config.model_dump(mode="json"),
            "policy": policy.model_dump(mode="json"),
        },
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode()).hexdigest()[:16]


def load_policy_file(path: Union[str, Path]) -> RiskPolicy:
    """
    Load and validate a risk policy from YAML.

    Raises:
        ConfigurationError: file missing or unreadable, bad YAML, or a
            policy that fails validation
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read policy file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Policy file {path} must contain a mapping")

    try:
        return RiskPolicy.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid policy in {path}: {e}") from e


class ConfigStore:
    """
    Holds the active DetectionSnapshot.

    Reads are a single attribute load and never block. Writes are
    serialized by a lock so versions increase monotonically.
    """

    def __init__(
        self,
        config: Optional[FraudDetectionConfiguration] = None,
        policy: Optional[RiskPolicy] = None,
        policy_path: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize store.

        Args:
            config: Initial configuration (defaults: enabled, medium, all rules)
            policy: Initial policy (defaults to DEFAULT_POLICY)
            policy_path: YAML file used by reload_policy()
        """
        self._lock = threading.Lock()
        self.policy_path = Path(policy_path) if policy_path else None
        self._snapshot = self._build(
            config or FraudDetectionConfiguration(),
            policy or DEFAULT_POLICY,
            version=1,
        )
        metrics.config_version.set(1)

    @staticmethod
    def _build(
        config: FraudDetectionConfiguration,
        policy: RiskPolicy,
        version: int,
    ) -> DetectionSnapshot:
        thresholds = config.threshold_override or policy.thresholds[config.sensitivity]
        return DetectionSnapshot(
            config=config,
            policy=policy,
            thresholds=thresholds,
            version=version,
            policy_hash=compute_hash(config, policy),
        )

    def current(self) -> DetectionSnapshot:
        return self._snapshot

    def _swap(
        self,
        config: Optional[FraudDetectionConfiguration] = None,
        policy: Optional[RiskPolicy] = None,
    ) -> DetectionSnapshot:
        with self._lock:
            previous = self._snapshot
            snapshot = self._build(
                config or previous.config,
                policy or previous.policy,
                version=previous.version + 1,
            )
            self._snapshot = snapshot

        metrics.config_version.set(snapshot.version)
        metrics.config_updates.labels(outcome="applied").inc()
        logger.info(
            "Detection config v%d applied (hash=%s, sensitivity=%s, enabled=%s)",
            snapshot.version,
            snapshot.policy_hash,
            snapshot.config.sensitivity.value,
            snapshot.config.enabled,
        )
        return snapshot

    def _rejected(self, message: str) -> ConfigurationError:
        metrics.config_updates.labels(outcome="rejected").inc()
        logger.error("Configuration update rejected: %s", message)
        return ConfigurationError(message)

    def update(
        self,
        config: Union[FraudDetectionConfiguration, dict],
    ) -> DetectionSnapshot:
        """
        Replace the detection configuration.

        Raises:
            ConfigurationError: the new configuration is invalid
        """
        if not isinstance(config, FraudDetectionConfiguration):
            try:
                config = FraudDetectionConfiguration.model_validate(config)
            except ValidationError as e:
                raise self._rejected(f"Invalid fraud configuration: {e}") from e
        return self._swap(config=config)

    def update_policy(self, policy: Union[RiskPolicy, dict]) -> DetectionSnapshot:
        """
        Replace the risk policy.

        Raises:
            ConfigurationError: the new policy is invalid
        """
        if not isinstance(policy, RiskPolicy):
            try:
                policy = RiskPolicy.model_validate(policy)
            except ValidationError as e:
                raise self._rejected(f"Invalid risk policy: {e}") from e
        return self._swap(policy=policy)

    def reload_policy(self, path: Optional[Union[str, Path]] = None) -> DetectionSnapshot:
        """
        Reload the risk policy from YAML.

        Raises:
            ConfigurationError: no path configured, or the file is invalid
        """
        target = Path(path) if path else self.policy_path
        if target is None:
            raise ConfigurationError("No policy file configured")
        try:
            policy = load_policy_file(target)
        except ConfigurationError as e:
            metrics.config_updates.labels(outcome="rejected").inc()
            logger.error("Policy reload failed, keeping v%d: %s", self._snapshot.version, e)
            raise
        return self._swap(policy=policy)
