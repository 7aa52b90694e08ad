"""Tests for configuration models and loading."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from batch_watchdog.config.loader import (
    load_config_file,
    load_env_vars,
    load_watchdog_config,
    resolve_config_path,
)
from batch_watchdog.config.models import RecoveryItem, WatchdogConfig
from batch_watchdog.utils.logging import ConfigurationError

LEGACY_CONFIG = {
    "healthCheckInterval": "5000",
    "recoveryExecutionTimeout": "60000",
    "criticalCounts": "3",
    "noConsoleForRecoveryScript": "true",
    "recoveryItems": [
        {
            "recoveryBatch": "C:\\recovery\\restart-apps.bat",
            "overrideRecoveryExecutionTimeout": "30000",
            "starcounterBinDirectory": "C:\\Program Files\\Starcounter",
            "scDatabase": "default",
            "processes": ["scdata", "scipcmonitor"],
            "scAppNames": ["Dashboard", "Billing"],
        },
        {"recoveryBatch": "C:\\recovery\\restart-worker.bat"},
    ],
}


def write_json(directory: Path, data, name: str = "cbwatchdog.json") -> Path:
    path = directory / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestWatchdogConfig:
    """Test WatchdogConfig model."""

    def test_default_values(self):
        config = WatchdogConfig()

        assert config.health_check_interval_ms == 10_000
        assert config.recovery_execution_timeout_ms == 300_000
        assert config.critical_counts == 10
        assert config.suppress_recovery_console is False
        assert config.status_query_executable == "staradmin"
        assert config.recovery_items == ()

    def test_durations_in_seconds(self):
        config = WatchdogConfig(
            health_check_interval_ms=2500,
            recovery_execution_timeout_ms=90_000,
            status_query_timeout_ms=1500,
        )

        assert config.health_check_interval == 2.5
        assert config.default_recovery_execution_timeout == 90.0
        assert config.status_query_timeout == 1.5

    @pytest.mark.parametrize(
        "field,value",
        [
            ("critical_counts", 0),
            ("health_check_interval_ms", 0),
            ("recovery_execution_timeout_ms", -1),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            WatchdogConfig(**{field: value})

    def test_config_is_frozen(self):
        config = WatchdogConfig()

        with pytest.raises(ValidationError):
            config.critical_counts = 3

    def test_describe_lists_items(self):
        config = WatchdogConfig.model_validate(LEGACY_CONFIG)

        text = config.describe()

        assert text.startswith("Watchdog will be started with:")
        assert "criticalCounts : 3" in text
        assert "recoveryAction : C:\\recovery\\restart-apps.bat" in text
        assert "processNames : scdata, scipcmonitor" in text


class TestRecoveryItem:
    """Test RecoveryItem model."""

    def test_minimal_item(self):
        item = RecoveryItem(recovery_action="/opt/recover.sh")

        assert item.process_names == ()
        assert item.app_names == ()
        assert item.bin_directory is None
        assert item.recovery_execution_timeout_override == 0.0

    def test_recovery_action_required(self):
        with pytest.raises(ValidationError):
            RecoveryItem.model_validate({"processNames": ["workerA"]})

    def test_empty_recovery_action_rejected(self):
        with pytest.raises(ValidationError):
            RecoveryItem(recovery_action="")

    def test_empty_bin_directory_is_none(self):
        item = RecoveryItem.model_validate(
            {"recoveryAction": "/opt/recover.sh", "binDirectory": ""}
        )

        assert item.bin_directory is None

    def test_current_key_names(self):
        item = RecoveryItem.model_validate(
            {
                "recoveryAction": "/opt/recover.sh",
                "recoveryExecutionTimeoutOverride": 15000,
                "binDirectory": "/opt/star/bin",
                "databaseName": "production",
                "processNames": ["workerA"],
                "appNames": ["Dashboard"],
                "runElevated": True,
            }
        )

        assert item.recovery_execution_timeout_override == 15.0
        assert item.bin_directory == "/opt/star/bin"
        assert item.database_name == "production"
        assert item.process_names == ("workerA",)
        assert item.app_names == ("Dashboard",)
        assert item.run_elevated is True


class TestResolveConfigPath:
    def test_relative_to_config_dir(self, tmp_path):
        assert resolve_config_path("cb.json", tmp_path) == tmp_path / "cb.json"

    def test_absolute_path_used_as_given(self, tmp_path):
        absolute = tmp_path / "elsewhere.json"

        assert resolve_config_path(str(absolute), "/ignored") == absolute

    def test_relative_to_cwd_by_default(self):
        assert resolve_config_path("cb.json") == Path.cwd() / "cb.json"


class TestLoadConfigFile:
    """Test raw file loading."""

    def test_json_with_bom(self, tmp_path):
        path = tmp_path / "cbwatchdog.json"
        path.write_text('{"criticalCounts": 4}', encoding="utf-8-sig")

        assert load_config_file(path) == {"criticalCounts": 4}

    def test_yaml(self, tmp_path):
        path = tmp_path / "cbwatchdog.yaml"
        path.write_text(
            "criticalCounts: 4\nrecoveryItems:\n  - recoveryAction: /opt/r.sh\n"
        )

        data = load_config_file(path)

        assert data["criticalCounts"] == 4
        assert data["recoveryItems"][0]["recoveryAction"] == "/opt/r.sh"

    def test_empty_yaml_is_empty_mapping(self, tmp_path):
        path = tmp_path / "cbwatchdog.yml"
        path.write_text("")

        assert load_config_file(path) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Invalid format on"):
            load_config_file(tmp_path / "missing.json")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "cbwatchdog.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config_file(path)

        assert exc_info.value.context["path"] == str(path)

    def test_undecodable_file(self, tmp_path):
        path = tmp_path / "cbwatchdog.json"
        path.write_bytes(b'{"criticalCounts": "\xff\xfe"}')

        with pytest.raises(ConfigurationError, match="Invalid format on") as exc_info:
            load_config_file(path)

        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)

    def test_top_level_list_rejected(self, tmp_path):
        path = write_json(tmp_path, [1, 2, 3])

        with pytest.raises(ConfigurationError, match="mapping"):
            load_config_file(path)


class TestLoadEnvVars:
    @patch.dict(
        "os.environ",
        {
            "BATCH_WATCHDOG_CRITICAL_COUNTS": "4",
            "BATCH_WATCHDOG_HEALTH_CHECK_INTERVAL": "2000",
            "UNRELATED": "x",
        },
        clear=True,
    )
    def test_env_mapping(self):
        assert load_env_vars() == {
            "critical_counts": "4",
            "health_check_interval_ms": "2000",
        }

    @patch.dict("os.environ", {}, clear=True)
    def test_no_env(self):
        assert load_env_vars() == {}


class TestLoadWatchdogConfig:
    """Test the full loading pipeline."""

    @patch.dict("os.environ", {}, clear=True)
    def test_legacy_keys_with_string_values(self, tmp_path):
        write_json(tmp_path, LEGACY_CONFIG)

        config = load_watchdog_config(config_dir=tmp_path)

        assert config.health_check_interval_ms == 5000
        assert config.recovery_execution_timeout_ms == 60_000
        assert config.critical_counts == 3
        assert config.suppress_recovery_console is True

        first, second = config.recovery_items
        assert first.recovery_action == "C:\\recovery\\restart-apps.bat"
        assert first.recovery_execution_timeout_override_ms == 30_000
        assert first.bin_directory == "C:\\Program Files\\Starcounter"
        assert first.database_name == "default"
        assert first.process_names == ("scdata", "scipcmonitor")
        assert first.app_names == ("Dashboard", "Billing")
        assert second.recovery_execution_timeout_override_ms == 0

    @patch.dict("os.environ", {}, clear=True)
    def test_item_order_preserved(self, tmp_path):
        items = [{"recoveryAction": f"/opt/r{i}.sh"} for i in range(5)]
        write_json(tmp_path, {"recoveryItems": items})

        config = load_watchdog_config(config_dir=tmp_path)

        assert [i.recovery_action for i in config.recovery_items] == [
            f"/opt/r{i}.sh" for i in range(5)
        ]

    @patch.dict("os.environ", {}, clear=True)
    def test_empty_file_uses_defaults(self, tmp_path):
        write_json(tmp_path, {})

        config = load_watchdog_config(config_dir=tmp_path)

        assert config == WatchdogConfig()

    @patch.dict("os.environ", {"BATCH_WATCHDOG_CRITICAL_COUNTS": "7"}, clear=True)
    def test_env_beats_file(self, tmp_path):
        write_json(tmp_path, {"criticalCounts": 3})

        config = load_watchdog_config(config_dir=tmp_path)

        assert config.critical_counts == 7

    @patch.dict("os.environ", {"BATCH_WATCHDOG_CRITICAL_COUNTS": "7"}, clear=True)
    def test_explicit_override_beats_env(self, tmp_path):
        write_json(tmp_path, {"criticalCounts": 3})

        config = load_watchdog_config(
            config_dir=tmp_path, overrides={"critical_counts": 2}
        )

        assert config.critical_counts == 2

    @patch.dict("os.environ", {}, clear=True)
    def test_override_shadows_legacy_alias(self, tmp_path):
        write_json(tmp_path, {"recoveryExecutionTimeout": 60_000})

        config = load_watchdog_config(
            config_dir=tmp_path, overrides={"recovery_execution_timeout_ms": 1000}
        )

        assert config.recovery_execution_timeout_ms == 1000

    @patch.dict("os.environ", {}, clear=True)
    def test_custom_file_name(self, tmp_path):
        write_json(tmp_path, {"criticalCounts": 5}, name="other.json")

        config = load_watchdog_config("other.json", config_dir=tmp_path)

        assert config.critical_counts == 5

    @patch.dict("os.environ", {}, clear=True)
    def test_missing_file_is_fatal(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_watchdog_config(config_dir=tmp_path)

    @patch.dict("os.environ", {}, clear=True)
    def test_undecodable_file_is_configuration_error(self, tmp_path):
        (tmp_path / "cbwatchdog.json").write_bytes(b'{"criticalCounts": "\xff\xfe"}')

        with pytest.raises(ConfigurationError):
            load_watchdog_config(config_dir=tmp_path)

    @patch.dict("os.environ", {}, clear=True)
    def test_zero_critical_counts_rejected(self, tmp_path):
        write_json(tmp_path, {"criticalCounts": 0})

        with pytest.raises(ConfigurationError) as exc_info:
            load_watchdog_config(config_dir=tmp_path)

        assert exc_info.value.context["errors"]

    @patch.dict("os.environ", {}, clear=True)
    def test_non_numeric_interval_rejected(self, tmp_path):
        write_json(tmp_path, {"healthCheckInterval": "soon"})

        with pytest.raises(ConfigurationError, match="Invalid format on"):
            load_watchdog_config(config_dir=tmp_path)

    @patch.dict("os.environ", {}, clear=True)
    def test_item_without_action_rejected(self, tmp_path):
        write_json(tmp_path, {"recoveryItems": [{"processNames": ["workerA"]}]})

        with pytest.raises(ConfigurationError):
            load_watchdog_config(config_dir=tmp_path)
