from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest
from pydantic import ValidationError

from hushline.config import REPLACEMENT_CHARACTER_ENV, AppConfig, load_config, save_config


@pytest.fixture(autouse=True)
def _no_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(REPLACEMENT_CHARACTER_ENV, raising=False)


def test_load_defaults_when_config_missing(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "config.toml")
    assert cfg.prompt == "Password: "
    assert cfg.replacement_character == "*"
    assert cfg.mask == "*"
    assert cfg.log_level == "WARN"


def test_config_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.toml"
    original = AppConfig(prompt='PIN "card"\t> ', replacement_character="#", log_level="DEBUG")

    save_config(original, path)
    loaded = load_config(path)

    assert loaded == original


def test_empty_replacement_disables_echo(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    save_config(AppConfig(replacement_character=""), path)

    cfg = load_config(path)

    assert cfg.replacement_character == ""
    assert cfg.mask is None


def test_saved_config_is_private(tmp_path: Path) -> None:
    path = save_config(AppConfig(), tmp_path / "config.toml")
    if os.name == "nt":
        pytest.skip("POSIX permissions only")
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        'prompt = 42\nreplacement_character = "**"\nlog_level = "LOUD"\n',
        encoding="utf-8",
    )

    cfg = load_config(path)

    assert cfg == AppConfig()


def test_warning_alias_is_normalized(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('log_level = "warning"\n', encoding="utf-8")

    assert load_config(path).log_level == "WARN"


def test_broken_toml_returns_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("prompt = [unterminated\n", encoding="utf-8")

    assert load_config(path) == AppConfig()


def test_environment_overrides_replacement_character(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    path = tmp_path / "config.toml"
    save_config(AppConfig(replacement_character="#"), path)
    monkeypatch.setenv(REPLACEMENT_CHARACTER_ENV, "@")

    assert load_config(path).replacement_character == "@"


def test_invalid_environment_override_is_ignored(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv(REPLACEMENT_CHARACTER_ENV, "\x07")

    assert load_config(tmp_path / "config.toml").replacement_character == "*"


def test_assignment_is_validated() -> None:
    cfg = AppConfig()
    with pytest.raises(ValidationError):
        cfg.replacement_character = "ab"
    with pytest.raises(ValidationError):
        cfg.replacement_character = "\n"
