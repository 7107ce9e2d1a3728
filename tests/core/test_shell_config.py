"""Config parsing and validation tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from devops_shell.core.config import (
    DEFAULT_STATUS_INTERVAL,
    DEFAULT_TASK_TIMEOUT,
    ShellConfig,
    get_config_path,
    load_config,
)
from devops_shell.core.errors import ShellConfigError
from devops_shell.core.home import default_history_path, get_shell_home


def _write_config(directory: Path, content: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    config_file = directory / "config.yaml"
    config_file.write_text(content, encoding="utf-8")
    return config_file


class TestHome:
    def test_env_override(self, shell_home: Path) -> None:
        assert get_shell_home() == shell_home / ".devops-shell"
        assert get_config_path() == shell_home / ".devops-shell" / "config.yaml"

    def test_default_under_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DEVOPS_SHELL_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))

        assert get_shell_home() == tmp_path / ".devops-shell"
        assert default_history_path() == tmp_path / ".ash_history.txt"


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, shell_home: Path) -> None:
        config = load_config()

        assert config.task_timeout == DEFAULT_TASK_TIMEOUT == 10.0
        assert config.status_interval == DEFAULT_STATUS_INTERVAL == 1.0
        assert config.history_file == shell_home / ".ash_history.txt"
        assert config.log_level == "WARNING"

    def test_values_are_read(self, tmp_path: Path) -> None:
        config_file = _write_config(
            tmp_path,
            "task_timeout: 3\n"
            "status_interval: 0.5\n"
            f"history_file: {tmp_path / 'hist.txt'}\n"
            "history_size: 20\n"
            "log_level: debug\n",
        )

        config = load_config(config_file)

        assert config.task_timeout == 3.0
        assert config.status_interval == 0.5
        assert config.history_file == tmp_path / "hist.txt"
        assert config.history_size == 20
        assert config.log_level == "DEBUG"

    def test_corrupt_yaml_clear_error(self, tmp_path: Path) -> None:
        config_file = _write_config(tmp_path, "invalid: yaml: content: [")

        with pytest.raises(ShellConfigError) as exc_info:
            load_config(config_file)

        assert "Invalid YAML" in str(exc_info.value)
        assert "config.yaml" in str(exc_info.value)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        config_file = _write_config(tmp_path, "- a\n- b\n")

        with pytest.raises(ShellConfigError, match="mapping"):
            load_config(config_file)

    @pytest.mark.parametrize(
        "content",
        [
            "task_timeout: soon\n",
            "task_timeout: -1\n",
            "status_interval: 0\n",
            "task_timeout: true\n",
            "history_size: -5\n",
            "history_file: ''\n",
        ],
    )
    def test_invalid_values_rejected(self, tmp_path: Path, content: str) -> None:
        config_file = _write_config(tmp_path, content)

        with pytest.raises(ShellConfigError):
            load_config(config_file)

    def test_unknown_log_level_reported(self, tmp_path: Path) -> None:
        config_file = _write_config(tmp_path, "log_level: loud\n")

        with pytest.raises(ShellConfigError) as exc_info:
            load_config(config_file)

        assert "loud" in str(exc_info.value)
        assert "Valid levels" in str(exc_info.value)

    def test_unknown_keys_ignored(self, tmp_path: Path) -> None:
        config_file = _write_config(tmp_path, "task_timeout: 4\ncolour: blue\n")

        assert load_config(config_file).task_timeout == 4.0


class TestOverrides:
    def test_with_overrides_skips_none(self) -> None:
        config = ShellConfig(task_timeout=10.0).with_overrides(task_timeout=None, status_interval=2.0)

        assert config.task_timeout == 10.0
        assert config.status_interval == 2.0
