"""XDG config loading/saving."""

from __future__ import annotations

import os
import sys
from contextlib import suppress
from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

DEFAULT_CONFIG_PATH = Path("~/.config/hushline/config.toml").expanduser()
DEFAULT_PROMPT = "Password: "
DEFAULT_REPLACEMENT_CHARACTER = "*"
DEFAULT_LOG_LEVEL: Literal["DEBUG", "INFO", "WARN", "ERROR"] = "WARN"
REPLACEMENT_CHARACTER_ENV = "HUSHLINE_REPLACEMENT_CHARACTER"

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARN", "ERROR"}


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    prompt: str = DEFAULT_PROMPT
    # Empty string disables placeholder echo.
    replacement_character: str = Field(default=DEFAULT_REPLACEMENT_CHARACTER, max_length=1)
    log_level: Literal["DEBUG", "INFO", "WARN", "ERROR"] = DEFAULT_LOG_LEVEL

    @field_validator("replacement_character")
    @classmethod
    def _validate_replacement(cls, value: str) -> str:
        if value and not value.isprintable():
            raise ValueError(f"Replacement character must be printable: {value!r}")
        return value

    @property
    def mask(self) -> str | None:
        return self.replacement_character or None


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")


def _toml_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return f'"{_escape(value)}"'
    raise TypeError(f"Unsupported TOML scalar type: {type(value)!r}")


def _is_valid_replacement(value: object) -> bool:
    return isinstance(value, str) and len(value) <= 1 and (not value or value.isprintable())


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()

    prompt = raw.get("prompt", cfg.prompt)
    if isinstance(prompt, str):
        cfg.prompt = prompt

    replacement = raw.get("replacement_character", cfg.replacement_character)
    if _is_valid_replacement(replacement):
        cfg.replacement_character = cast(str, replacement)

    env_replacement = os.getenv(REPLACEMENT_CHARACTER_ENV)
    if env_replacement is not None and _is_valid_replacement(env_replacement):
        cfg.replacement_character = env_replacement

    log_level = raw.get("log_level", cfg.log_level)
    if isinstance(log_level, str):
        normalized = log_level.strip().upper()
        if normalized == "WARNING":
            normalized = "WARN"
        if normalized in _VALID_LOG_LEVELS:
            cfg.log_level = cast(Literal["DEBUG", "INFO", "WARN", "ERROR"], normalized)

    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _sanitize({})
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return _sanitize({})
    if not isinstance(raw, dict):
        return _sanitize({})
    return _sanitize(raw)


def save_config(config: AppConfig, path: str | Path | None = None) -> Path:
    resolved = get_config_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    lines = [
        f"prompt = {_toml_scalar(config.prompt)}",
        f"replacement_character = {_toml_scalar(config.replacement_character)}",
        f"log_level = {_toml_scalar(config.log_level)}",
    ]
    resolved.write_text("\n".join(lines) + "\n", encoding="utf-8")
    with suppress(OSError):
        resolved.chmod(0o600)
    return resolved
