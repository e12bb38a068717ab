"""Askpass-style command: prompt, read one masked line, print it to stdout."""

from __future__ import annotations

import argparse
import asyncio
import logging as py_logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TextIO

from .config import load_config
from .errors import ExitCode, HushlineError, user_facing_error
from .logging import LOG_LEVELS, configure_logging, default_log_path, normalize_level
from .session import read_password
from .stream import InputStream

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")

SourceFactory = Callable[[], InputStream]


def _mask_type(value: str) -> str:
    if len(value) != 1 or not value.isprintable():
        raise argparse.ArgumentTypeError("--mask must be a single printable character")
    return value


def _log_level_type(value: str) -> str:
    normalized = normalize_level(value)
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hushline",
        description="Read one line of masked input from stdin and print it to stdout.",
    )
    parser.add_argument("--prompt", default=None, help="Prompt written to stderr")
    mask = parser.add_mutually_exclusive_group()
    mask.add_argument("--mask", type=_mask_type, default=None, help="Placeholder echoed per character")
    mask.add_argument("--no-mask", action="store_true", help="Echo nothing while typing")
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--log-level", type=_log_level_type, default=None)
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _default_source() -> InputStream:
    from hushline.terminal import TerminalInputStream

    return TerminalInputStream()


async def ask_password(
    prompt: str,
    *,
    mask: str | None,
    source_factory: SourceFactory,
    prompt_stream: TextIO,
) -> str:
    source = source_factory()
    source.set_encoding("utf-8")
    prompt_stream.write(prompt)
    prompt_stream.flush()
    try:
        password = await read_password(
            source,
            output=prompt_stream if mask else None,
            replacement_character=mask,
        )
    finally:
        prompt_stream.write("\n")
        prompt_stream.flush()
        close = getattr(source, "close", None)
        if callable(close):
            close()
    if isinstance(password, bytes):
        return password.decode("utf-8", errors="replace")
    return password


def main(
    argv: Sequence[str] | None = None,
    *,
    source_factory: SourceFactory | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    out = stdout or sys.stdout
    err = stderr or sys.stderr
    logger = configure_logging(stream=err)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    config = load_config(namespace.config)
    level = namespace.log_level or config.log_level
    log_path = namespace.log_file.expanduser() if namespace.log_file is not None else default_log_path()
    logger = configure_logging(level=level, stream=err, log_file=log_path)

    prompt = namespace.prompt if namespace.prompt is not None else config.prompt
    if namespace.no_mask:
        mask = None
    else:
        mask = namespace.mask or config.mask

    try:
        logger.debug("Reading password mask=%s", bool(mask))
        password = asyncio.run(
            ask_password(
                prompt,
                mask=mask,
                source_factory=source_factory or _default_source,
                prompt_stream=err,
            )
        )
    except HushlineError as exc:
        logger.log(
            py_logging.INFO if exc.code == ExitCode.CANCELLED else py_logging.ERROR,
            "Handled HushlineError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(LOG_LEVELS["DEBUG"]),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=err)
        return int(exc.code)
    except KeyboardInterrupt:
        logger.info("Interrupted while reading password")
        return int(ExitCode.CANCELLED)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        try:
            hint = f"Inspect logs: {log_path}"
            print(user_facing_error("Unexpected runtime failure", hint=hint), file=err)
        except Exception:
            pass
        return int(ExitCode.RUNTIME_ERROR)

    out.write(password + "\n")
    out.flush()
    return int(ExitCode.SUCCESS)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
