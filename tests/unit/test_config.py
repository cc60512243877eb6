#
# tests/unit/test_config.py
#
"""
Tests for configuration loading and validation.
"""

from pathlib import Path

import pytest

from phpunit_runner.config import RunnerConfig, load_config
from phpunit_runner.exceptions import ConfigurationError

CONFIG_TOML = """
[phpunit]
php = "/usr/bin/php8.3"
phpunit = "vendor/bin/phpunit"
args = ["-c", "phpunit.xml"]
command = "docker compose exec -T app"
cwd = "project"
show_after_execution = "always"

[phpunit.paths]
"/home/dev/project" = "/app"

[phpunit.env]
XDEBUG_MODE = "off"
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "phpunit-runner.toml"
    path.write_text(CONFIG_TOML)
    return path


class TestRunnerConfig:
    def test_defaults(self) -> None:
        config = RunnerConfig()
        assert config.args == ()
        assert config.paths == {}
        assert config.clear_output_on_run is True
        assert config.show_after_execution == "onFailure"
        assert not config.is_remote

    def test_get_falls_back_to_default(self) -> None:
        config = RunnerConfig(php="php8.3")
        assert config.get("php", "php") == "php8.3"
        assert config.get("phpunit", "vendor/bin/phpunit") == "vendor/bin/phpunit"
        assert config.get("missing", 42) == 42

    def test_invalid_policy_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="show_after_execution"):
            RunnerConfig(show_after_execution="sometimes")

    def test_single_string_arg(self) -> None:
        assert RunnerConfig(args="--testdox").args == ("--testdox",)


class TestLoadConfig:
    def test_defaults_without_file(self) -> None:
        assert load_config(environ={}) == RunnerConfig()

    def test_file_values(self, config_file: Path) -> None:
        config = load_config(config_file, environ={})

        assert config.php == "/usr/bin/php8.3"
        assert config.args == ("-c", "phpunit.xml")
        assert config.paths == {"/home/dev/project": "/app"}
        assert config.env == {"XDEBUG_MODE": "off"}
        assert config.show_after_execution == "always"
        assert config.is_remote
        assert config.cwd == (config_file.parent / "project").resolve()

    def test_environment_overrides_file(self, config_file: Path) -> None:
        environ = {"PHPUNIT_RUNNER_PHP": "php8.2", "PHPUNIT_RUNNER_ARGS": "--group fast --stop-on-failure"}
        config = load_config(config_file, environ=environ)
        assert config.php == "php8.2"
        assert config.args == ("--group", "fast", "--stop-on-failure")

    def test_overrides_win_and_none_is_ignored(self, config_file: Path) -> None:
        environ = {"PHPUNIT_RUNNER_PHP": "php8.2"}
        config = load_config(config_file, overrides={"php": "php8.4", "command": None}, environ=environ)
        assert config.php == "php8.4"
        assert config.command == "docker compose exec -T app"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "nope.toml", environ={})

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("[phpunit\nphp = ")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            load_config(path, environ={})

    def test_unknown_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "unknown.toml"
        path.write_text('[phpunit]\nbinary = "php"\n')
        with pytest.raises(ConfigurationError, match="binary"):
            load_config(path, environ={})

    def test_validator_failure(self, tmp_path: Path) -> None:
        path = tmp_path / "policy.toml"
        path.write_text('[phpunit]\nshow_after_execution = "sometimes"\n')
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(path, environ={})

    def test_non_table_section(self, tmp_path: Path) -> None:
        path = tmp_path / "flat.toml"
        path.write_text('phpunit = "php"\n')
        with pytest.raises(ConfigurationError, match="must be a table"):
            load_config(path, environ={})
