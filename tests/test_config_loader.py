"""Tests for configuration loading and key conversion."""

import json
from pathlib import Path

from kubesafe.config.loader import (
    camel_to_snake,
    convert_keys,
    convert_to_camel,
    load_config,
    save_config,
    snake_to_camel,
)
from kubesafe.config.schema import Config


# ── Key conversion ──────────────────────────────────────────────────


class TestCamelToSnake:
    def test_simple(self):
        assert camel_to_snake("apiKey") == "api_key"

    def test_multiple_words(self):
        assert camel_to_snake("confidenceThreshold") == "confidence_threshold"

    def test_single_word(self):
        assert camel_to_snake("enabled") == "enabled"

    def test_already_snake(self):
        assert camel_to_snake("api_key") == "api_key"

    def test_empty(self):
        assert camel_to_snake("") == ""


class TestSnakeToCamel:
    def test_simple(self):
        assert snake_to_camel("api_key") == "apiKey"

    def test_multiple_words(self):
        assert snake_to_camel("max_output_bytes") == "maxOutputBytes"

    def test_single_word(self):
        assert snake_to_camel("enabled") == "enabled"

    def test_empty(self):
        assert snake_to_camel("") == ""


class TestConvertKeys:
    def test_nested_dict(self):
        data = {"translation": {"remote": {"apiKey": "key"}}}
        assert convert_keys(data) == {"translation": {"remote": {"api_key": "key"}}}

    def test_list_values_untouched(self):
        data = {"highVerbs": ["delete", "drain"]}
        assert convert_keys(data) == {"high_verbs": ["delete", "drain"]}

    def test_non_dict(self):
        assert convert_keys("hello") == "hello"
        assert convert_keys(None) is None

    def test_to_camel_nested(self):
        data = {"audit": {"retention_days": 30}}
        assert convert_to_camel(data) == {"audit": {"retentionDays": 30}}


# ── Config load/save ────────────────────────────────────────────────


class TestLoadConfig:
    def test_default_when_no_file(self, tmp_path: Path):
        config = load_config(tmp_path / "nonexistent.json")
        assert isinstance(config, Config)
        assert config.translation.timeout_seconds == 10.0

    def test_load_camel_case_json(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "kube": {"context": "dev-cluster"},
            "translation": {"confidenceThreshold": 80, "remote": {"apiKey": "sk-test"}},
            "audit": {"retentionDays": 30},
        }))
        config = load_config(config_file)
        assert config.kube.context == "dev-cluster"
        assert config.translation.confidence_threshold == 80
        assert config.translation.remote.api_key == "sk-test"
        assert config.audit.retention_days == 30

    def test_invalid_json_returns_default(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text("not json{{{")
        config = load_config(config_file)
        assert config.audit.retention_days == 90

    def test_empty_file_returns_default(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text("")
        assert isinstance(load_config(config_file), Config)

    def test_non_object_returns_default(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text("[1, 2, 3]")
        assert load_config(config_file).exec.timeout_seconds == 300

    def test_invalid_value_returns_default(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"audit": {"retentionDays": "forever"}}))
        assert load_config(config_file).audit.retention_days == 90


class TestSaveConfig:
    def test_save_creates_file(self, tmp_path: Path):
        config_file = tmp_path / "subdir" / "config.json"
        save_config(Config(), config_file)
        assert config_file.exists()

    def test_save_uses_camel_case(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        save_config(Config(), config_file)

        data = json.loads(config_file.read_text())
        assert "maxOutputBytes" in data["exec"]
        assert "apiKey" in data["translation"]["remote"]
        assert "highVerbs" in data["risk"]

    def test_roundtrip(self, tmp_path: Path):
        original = Config()
        original.kube.context = "staging-eu"
        original.translation.remote.api_key = "sk-roundtrip"
        original.risk.high_verbs.append("evict")

        config_file = tmp_path / "config.json"
        save_config(original, config_file)
        loaded = load_config(config_file)

        assert loaded.kube.context == "staging-eu"
        assert loaded.translation.remote.api_key == "sk-roundtrip"
        assert "evict" in loaded.risk.high_verbs
