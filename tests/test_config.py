from pathlib import Path

import pytest

from packager.cli.config import (
    DEFAULT_CONFIG,
    build_streaming_options,
    load_config,
    substitute_env_vars,
)
from packager.cli.config_validator import ConfigurationValidator, validate_config_file
from packager.errors import ConfigurationError


@pytest.fixture
def config_file(tmp_path):
    def write(content: str) -> Path:
        path = tmp_path / "packager.yaml"
        path.write_text(content, encoding="utf-8")
        return path
    return write


def test_defaults_without_config_file():
    config = load_config()

    assert config == DEFAULT_CONFIG


def test_file_values_override_defaults(config_file):
    path = config_file("streaming:\n  chunk_size_kb: 64\narchive:\n  compression_level: 9\n")

    config = load_config(str(path))

    assert config["streaming"]["chunk_size_kb"] == 64
    assert config["streaming"]["max_memory_mb"] == 100
    assert config["archive"]["compression_level"] == 9
    assert config["logging"]["level"] == "INFO"


def test_empty_config_file_means_defaults(config_file):
    assert load_config(str(config_file(""))) == DEFAULT_CONFIG


def test_environment_variables_are_substituted(config_file, monkeypatch, tmp_path):
    monkeypatch.setenv("PACKAGER_TEMP", str(tmp_path / "scratch"))
    path = config_file("streaming:\n  temp_directory: ${PACKAGER_TEMP}/streaming\n")

    config = load_config(str(path))

    assert config["streaming"]["temp_directory"] == f"{tmp_path / 'scratch'}/streaming"


def test_whole_value_substitution_keeps_scalar_types(config_file, monkeypatch):
    monkeypatch.setenv("PACKAGER_MEMORY_MB", "200")
    monkeypatch.setenv("PACKAGER_LEVEL", "9")
    monkeypatch.setenv("PACKAGER_MONITORING", "false")
    path = config_file(
        "streaming:\n"
        "  max_memory_mb: ${PACKAGER_MEMORY_MB}\n"
        "  memory_monitoring: ${PACKAGER_MONITORING}\n"
        "archive:\n"
        "  compression_level: ${PACKAGER_LEVEL}\n"
    )

    config = load_config(str(path))
    options = build_streaming_options(config)

    assert config["streaming"]["max_memory_mb"] == 200
    assert config["archive"]["compression_level"] == 9
    assert config["streaming"]["memory_monitoring"] is False
    assert options.max_memory_bytes == 200 * 1024 * 1024
    assert options.memory_monitoring_enabled is False


def test_non_scalar_variable_value_stays_a_string(monkeypatch):
    monkeypatch.setenv("PACKAGER_LIST", "[1, 2]")

    assert substitute_env_vars({"a": "${PACKAGER_LIST}"}) == {"a": "[1, 2]"}


def test_unset_environment_variable_becomes_empty(monkeypatch):
    monkeypatch.delenv("PACKAGER_UNSET", raising=False)

    assert substitute_env_vars({"a": ["x${PACKAGER_UNSET}y"]}) == {"a": ["xy"]}


@pytest.mark.parametrize("content", [
    "streaming:\n  chunk_size_kb: 0\n",
    "streaming:\n  max_memory_mb: lots\n",
    "streaming:\n  memory_monitoring: maybe\n",
    "archive:\n  compression_level: 12\n",
    "logging:\n  level: LOUD\n",
    "streaming: 5\n",
])
def test_invalid_values_are_rejected(config_file, content):
    with pytest.raises(ConfigurationError):
        load_config(str(config_file(content)))


def test_malformed_yaml_is_rejected(config_file):
    with pytest.raises(ConfigurationError):
        load_config(str(config_file("streaming: [unclosed\n")))


def test_missing_config_file_is_rejected(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "missing.yaml"))


def test_build_options_converts_units(tmp_path):
    config = load_config()
    config["streaming"]["temp_directory"] = str(tmp_path)

    options = build_streaming_options(config)

    assert options.max_memory_bytes == 100 * 1024 * 1024
    assert options.chunk_size_bytes == 1024 * 1024
    assert options.memory_monitoring_enabled is True
    assert options.temp_directory == tmp_path


def test_build_options_applies_overrides(tmp_path):
    options = build_streaming_options(load_config(), {
        "chunk_size_kb": 4,
        "max_memory_mb": None,
        "memory_monitoring": False,
        "temp_directory": str(tmp_path),
    })

    assert options.chunk_size_bytes == 4 * 1024
    assert options.max_memory_bytes == 100 * 1024 * 1024
    assert options.memory_monitoring_enabled is False
    assert options.temp_directory == tmp_path


def test_relative_temp_directory_resolves_from_cwd(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)

    options = build_streaming_options(load_config())

    assert options.temp_directory == tmp_path / ".temp" / "streaming"


def test_invalid_override_is_rejected():
    with pytest.raises(ConfigurationError):
        build_streaming_options(load_config(), {"chunk_size_kb": 0})


def test_validator_warnings_do_not_fail_validation():
    config = {
        "streaming": {"max_memory_mb": 1, "chunk_size_kb": 4096},
        "archive": {"compression_level": 0},
        "extras": {},
    }

    is_valid, issues = ConfigurationValidator().validate_packager_config(config)

    assert is_valid
    assert any("larger than the memory ceiling" in issue for issue in issues)
    assert any("without compression" in issue for issue in issues)
    assert any("extras" in issue for issue in issues)


def test_validate_output_path(tmp_path):
    validator = ConfigurationValidator()
    existing = tmp_path / "package.zip"
    existing.write_bytes(b"")

    assert validator.validate_output_path(str(tmp_path / "new" / "package.zip")) == (True, [])
    is_valid, issues = validator.validate_output_path(str(existing))
    assert is_valid
    assert "overwritten" in issues[0]


def test_config_file_must_hold_a_mapping(config_file):
    is_valid, issues = validate_config_file(str(config_file("- just\n- a list\n")))

    assert not is_valid
    assert "dictionary" in issues[0]
