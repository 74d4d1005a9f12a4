# tests/config/test_config_loading.py
"""
Tests for goalcore configuration loading.

Validates the precedence of the configuration sources (defaults < TOML
file < dict < ``GOALCORE_<SECTION>__<KEY>`` environment variables), the
optional ``[goalcore]`` table, path expansion and validation errors.
"""

import textwrap
from pathlib import Path

import pytest

from goalcore.config import GoalCoreConfig, load_config
from goalcore.exceptions import ConfigError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_toml(path: Path, content: str) -> str:
    """Write TOML content to a file and return the path string."""
    path.write_text(textwrap.dedent(content))
    return str(path)


# ---------------------------------------------------------------------------
# Tests: defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    """Defaults mirror the documented behaviour."""

    def test_scheduler_defaults(self):
        config = load_config(environ={})
        assert config.scheduler.max_queue_size == 20
        assert config.scheduler.importance_boosts["cerebrum_autonomous"] == 0.3
        assert config.scheduler.fold_user_value is False

    def test_approval_defaults(self):
        config = GoalCoreConfig()
        assert config.approval.timeout_seconds == 60.0
        assert config.approval.timeout_policy == "approve"

    def test_coordinator_intervals(self):
        coordinator = GoalCoreConfig().coordinator
        assert coordinator.reflection_interval == 300.0
        assert coordinator.processing_interval == 30.0
        assert coordinator.tier_dispatch_interval == 30.0
        assert coordinator.progress_oracle == "deliverables"

    def test_logging_dict_drops_empty_components(self):
        data = GoalCoreConfig().logging.to_logging_dict()
        assert "components" not in data
        assert data["console_enabled"] is False


# ---------------------------------------------------------------------------
# Tests: sources and precedence
# ---------------------------------------------------------------------------


class TestSources:
    def test_toml_file_with_goalcore_table(self, tmp_path):
        path = _write_toml(
            tmp_path / "goalcore.toml",
            """\
            [goalcore.approval]
            timeout_seconds = 5
            timeout_policy = "reject"

            [goalcore.scheduler]
            max_queue_size = 7
            """,
        )
        config = load_config(config_path=path, environ={})
        assert config.approval.timeout_seconds == 5.0
        assert config.approval.timeout_policy == "reject"
        assert config.scheduler.max_queue_size == 7

    def test_toml_file_top_level(self, tmp_path):
        path = _write_toml(
            tmp_path / "flat.toml",
            """\
            [coordinator]
            processing_interval = 2.5
            """,
        )
        assert load_config(config_path=path, environ={}).coordinator.processing_interval == 2.5

    def test_dict_overrides_file(self, tmp_path):
        path = _write_toml(
            tmp_path / "goalcore.toml",
            """\
            [goalcore.scheduler]
            max_queue_size = 7
            fold_user_value = true
            """,
        )
        config = load_config(
            config_dict={"scheduler": {"max_queue_size": 9}},
            config_path=path,
            environ={},
        )
        assert config.scheduler.max_queue_size == 9
        # Sibling keys from the file survive the deep merge.
        assert config.scheduler.fold_user_value is True

    def test_environment_overrides_dict(self):
        config = load_config(
            config_dict={"approval": {"timeout_policy": "reject"}},
            environ={
                "GOALCORE_APPROVAL__TIMEOUT_POLICY": "approve",
                "GOALCORE_PROVIDER__DEFAULT_MODEL": "llama3.2:latest",
                "UNRELATED": "x",
            },
        )
        assert config.approval.timeout_policy == "approve"
        assert config.provider.default_model == "llama3.2:latest"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(config_path=tmp_path / "nope.toml", environ={})


# ---------------------------------------------------------------------------
# Tests: validation and expansion
# ---------------------------------------------------------------------------


class TestValidation:
    def test_bad_timeout_policy(self):
        with pytest.raises(ConfigError):
            load_config(config_dict={"approval": {"timeout_policy": "maybe"}}, environ={})

    def test_non_positive_interval(self):
        with pytest.raises(ConfigError):
            load_config(config_dict={"coordinator": {"processing_interval": 0}}, environ={})

    def test_unknown_progress_oracle(self):
        with pytest.raises(ConfigError):
            load_config(config_dict={"coordinator": {"progress_oracle": "psychic"}}, environ={})

    def test_paths_expanded(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        config = load_config(
            config_dict={"storage": {"db_path": "~/goals.db"}, "agents": {"config_dir": "~/agents"}},
            environ={},
        )
        assert config.storage.db_path == str(tmp_path / "goals.db")
        assert config.agents.config_dir == str(tmp_path / "agents")

    def test_memory_db_path_untouched(self):
        config = load_config(config_dict={"storage": {"db_path": ":memory:"}}, environ={})
        assert config.storage.db_path == ":memory:"
