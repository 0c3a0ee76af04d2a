"""Unit tests for settings loading and validation."""

import pytest
from pydantic import ValidationError

from devswarm.config import (
    DEFAULT_WORKERS,
    OrchestratorConfig,
    RouterConfig,
    SwarmSettings,
    WorkerConfig,
    WorkerSettings,
    load_settings,
)
from devswarm.errors import ConfigurationError
from devswarm.quality import QualityConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep a stray .env or DEVSWARM_ variable from leaking into tests."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestDefaults:
    """Test default settings."""

    def test_default_workers(self):
        settings = SwarmSettings()
        ids = [w.worker_id for w in settings.orchestrator.workers]
        assert ids == ["backend", "frontend", "architect", "qa"]

    def test_default_workers_are_copies(self):
        settings = SwarmSettings()
        settings.orchestrator.workers[0].capabilities.append("extra")
        assert "extra" not in DEFAULT_WORKERS[0].capabilities

    def test_heartbeat_timeout(self):
        settings = SwarmSettings(
            worker=WorkerSettings(poll_interval_seconds=2.0),
            orchestrator=OrchestratorConfig(
                heartbeat_timeout_multiplier=3, min_heartbeat_timeout_seconds=0
            ),
        )
        assert settings.heartbeat_timeout_seconds() == 6.0

        settings.orchestrator.min_heartbeat_timeout_seconds = 30
        assert settings.heartbeat_timeout_seconds() == 30.0

    def test_heartbeat_timeout_covers_a_model_call(self):
        assert SwarmSettings().heartbeat_timeout_seconds() == 300.0

    def test_restart_cap(self):
        assert OrchestratorConfig().max_worker_restarts == 3
        assert OrchestratorConfig(max_worker_restarts=None).max_worker_restarts is None
        with pytest.raises(ValidationError):
            OrchestratorConfig(max_worker_restarts=-1)

    def test_worker_fields(self):
        assert set(WorkerConfig.model_fields) == {"worker_id", "specialization", "capabilities"}


class TestValidation:
    """Test field validators."""

    def test_capabilities_are_normalized(self):
        worker = WorkerConfig(worker_id="w", capabilities=[" API", "api", "", "Database"])
        assert worker.capabilities == ["api", "database"]

    def test_duplicate_worker_ids(self):
        with pytest.raises(ValidationError, match="Duplicate worker ids: a"):
            OrchestratorConfig(workers=[WorkerConfig(worker_id="a"), WorkerConfig(worker_id="a")])

    def test_empty_worker_id(self):
        with pytest.raises(ValidationError):
            WorkerConfig(worker_id="")

    def test_router_thresholds_ordered(self):
        with pytest.raises(ValidationError):
            RouterConfig(local_threshold=0.8, premium_threshold=0.5)

    def test_negative_budget(self):
        with pytest.raises(ValidationError):
            RouterConfig(monthly_budget_usd=-1)

    def test_quality_threshold_is_clamped(self):
        assert QualityConfig(min_acceptable_score=-10).min_acceptable_score == 0


class TestLoadSettings:
    """Test load_settings()."""

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("DEVSWARM_ROUTER__MONTHLY_BUDGET_USD", "20")
        monkeypatch.setenv("DEVSWARM_WORKER__POLL_INTERVAL_SECONDS", "0.5")
        monkeypatch.setenv("DEVSWARM_LOGGING__LOG_LEVEL", "DEBUG")

        settings = load_settings()

        assert settings.router.monthly_budget_usd == 20
        assert settings.worker.poll_interval_seconds == 0.5
        assert settings.logging.log_level == "DEBUG"

    def test_env_file(self, tmp_path):
        env_file = tmp_path / "swarm.env"
        env_file.write_text("DEVSWARM_QUALITY__MIN_ACCEPTABLE_SCORE=85\n")

        settings = load_settings(env_file=env_file)
        assert settings.quality.min_acceptable_score == 85

    def test_missing_env_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_settings(env_file=tmp_path / "missing.env")

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("DEVSWARM_ROUTER__MONTHLY_BUDGET_USD", "-5")
        with pytest.raises(ConfigurationError):
            load_settings()

    def test_overrides(self):
        settings = load_settings(router=RouterConfig(max_premium_calls_per_day=3))
        assert settings.router.max_premium_calls_per_day == 3
