"""
Policy and Configuration Tests

Tests for the risk policy model, YAML loading and the configuration
store (snapshot swaps, versioning and rejected updates).
"""

import threading
from pathlib import Path

import pytest

from risk_engine.errors import ConfigurationError
from risk_engine.policy import (
    DEFAULT_POLICY,
    DEFAULT_THRESHOLDS,
    ConfigStore,
    FraudDetectionConfiguration,
    FraudRule,
    RiskPolicy,
    ThresholdTable,
    compute_hash,
    load_policy_file,
)
from risk_engine.schemas import FraudSensitivity

POLICY_FILE = Path(__file__).parent.parent / "config" / "risk_policy.yaml"


class TestRiskPolicy:
    """Tests for the policy model."""

    def test_shipped_file_matches_defaults(self):
        """config/risk_policy.yaml mirrors the built-in default policy."""
        policy = load_policy_file(POLICY_FILE)
        assert policy.model_dump() == DEFAULT_POLICY.model_dump()
        assert compute_hash(FraudDetectionConfiguration(), policy) == compute_hash(
            FraudDetectionConfiguration(), DEFAULT_POLICY
        )

    def test_partial_thresholds_keep_defaults(self):
        policy = RiskPolicy.model_validate({
            "thresholds": {"high": {"low": 5, "medium": 30, "high": 50, "critical": 70}},
        })

        assert policy.thresholds[FraudSensitivity.HIGH].critical == 70
        assert policy.thresholds[FraudSensitivity.MEDIUM] == DEFAULT_THRESHOLDS[FraudSensitivity.MEDIUM]
        assert set(policy.thresholds) == set(FraudSensitivity)

    def test_countries_normalized(self):
        policy = RiskPolicy.model_validate({"geolocation": {"high_risk_countries": ["ru", "NG", "RU"]}})
        assert policy.geolocation.high_risk_countries == ("NG", "RU")

    @pytest.mark.parametrize("data", [
        {"device": {"known_fraudulent": {"weight": 1.5, "severity": 1.0}}},
        {"velocity": {"window_minutes": 0}},
        {"thresholds": {"medium": {"low": 50, "medium": 40, "high": 70, "critical": 85}}},
    ])
    def test_invalid_policy_rejected(self, data):
        with pytest.raises(ValueError):
            RiskPolicy.model_validate(data)


class TestLoadPolicyFile:

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("")

        assert load_policy_file(path).model_dump() == RiskPolicy().model_dump()

    def test_override_single_value(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("version: '2.0.0'\nvelocity:\n  max_transactions: 3\n")

        policy = load_policy_file(path)

        assert policy.version == "2.0.0"
        assert policy.velocity.max_transactions == 3
        assert policy.velocity.window_minutes == 60

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_policy_file(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("velocity: [unclosed")

        with pytest.raises(ConfigurationError):
            load_policy_file(path)

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError):
            load_policy_file(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("amount_pattern:\n  round_amount: {weight: 2, severity: 0.5}\n")

        with pytest.raises(ConfigurationError):
            load_policy_file(path)


class TestFraudDetectionConfiguration:

    def test_defaults(self):
        config = FraudDetectionConfiguration()

        assert config.enabled
        assert config.sensitivity == FraudSensitivity.MEDIUM
        assert config.rules == frozenset(FraudRule)

    def test_rules_serialized_sorted(self):
        config = FraudDetectionConfiguration(
            rules=frozenset({FraudRule.VELOCITY_CHECK, FraudRule.AMOUNT_PATTERN_ANALYSIS}),
        )
        assert config.model_dump(mode="json")["rules"] == ["amount_pattern_analysis", "velocity_check"]

    def test_unknown_rule_rejected(self):
        with pytest.raises(ValueError):
            FraudDetectionConfiguration.model_validate({"rules": ["teleport_check"]})


class TestConfigStore:
    """Tests for atomic configuration swaps."""

    def test_initial_snapshot(self):
        snapshot = ConfigStore().current()

        assert snapshot.version == 1
        assert snapshot.thresholds == DEFAULT_THRESHOLDS[FraudSensitivity.MEDIUM]
        assert len(snapshot.policy_hash) == 16

    def test_update_bumps_version_and_thresholds(self):
        store = ConfigStore()
        before = store.current()

        after = store.update({"sensitivity": "high"})

        assert after.version == 2
        assert after.thresholds == DEFAULT_THRESHOLDS[FraudSensitivity.HIGH]
        assert after.policy_hash != before.policy_hash
        assert store.current() is after
        # Old snapshot is untouched
        assert before.config.sensitivity == FraudSensitivity.MEDIUM

    def test_threshold_override(self):
        store = ConfigStore()
        override = ThresholdTable(low=1, medium=2, high=3, critical=4)

        snapshot = store.update(FraudDetectionConfiguration(threshold_override=override))
        assert snapshot.thresholds == override

    def test_rejected_update_keeps_previous(self):
        store = ConfigStore()
        store.update({"sensitivity": "low"})

        with pytest.raises(ConfigurationError):
            store.update({"sensitivity": "extreme"})

        assert store.current().version == 2
        assert store.current().config.sensitivity == FraudSensitivity.LOW

    def test_rejected_threshold_override(self):
        store = ConfigStore()
        with pytest.raises(ConfigurationError):
            store.update({"threshold_override": {"low": 90, "medium": 50, "high": 70, "critical": 85}})
        assert store.current().version == 1

    def test_update_policy_keeps_config(self):
        store = ConfigStore(FraudDetectionConfiguration(sensitivity=FraudSensitivity.LOW))

        snapshot = store.update_policy({"version": "2.0.0"})

        assert snapshot.policy.version == "2.0.0"
        assert snapshot.config.sensitivity == FraudSensitivity.LOW

    def test_same_content_same_hash(self):
        a = ConfigStore().current()
        b = ConfigStore(FraudDetectionConfiguration(), RiskPolicy(
            version="1.0.0", description="Default payment risk policy",
        )).current()
        assert a.policy_hash == b.policy_hash

    def test_reload_policy(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("version: '1.1.0'\n")
        store = ConfigStore(policy_path=path)

        snapshot = store.reload_policy()

        assert snapshot.version == 2
        assert snapshot.policy.version == "1.1.0"

    def test_reload_invalid_file_keeps_previous(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("velocity: {max_transactions: -1}\n")
        store = ConfigStore(policy_path=path)

        with pytest.raises(ConfigurationError):
            store.reload_policy()
        assert store.current().version == 1
        assert store.current().policy == DEFAULT_POLICY

    def test_reload_without_path(self):
        with pytest.raises(ConfigurationError):
            ConfigStore().reload_policy()

    def test_concurrent_updates_get_distinct_versions(self):
        store = ConfigStore()
        versions = []
        lock = threading.Lock()

        def worker(sensitivity):
            snapshot = store.update({"sensitivity": sensitivity})
            with lock:
                versions.append(snapshot.version)

        threads = [
            threading.Thread(target=worker, args=(s,))
            for s in ["low", "medium", "high"] * 10
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(versions) == list(range(2, 32))
        assert store.current().version == 31
