"""Interactive prompt helpers built on InquirerPy."""

from __future__ import annotations

import sys
from typing import Callable

from InquirerPy import inquirer

from .exceptions import UserAbort, ValidationError


def _ensure_tty() -> None:
    if not sys.stdin.isatty():
        raise ValidationError(
            "Interactive mode requires a TTY. Provide the missing arguments to run non-interactively."
        )


def text_input(
    message: str,
    default: str | None = None,
    validate: Callable[[str], bool | str] | None = None,
) -> str:
    _ensure_tty()
    try:
        result = inquirer.text(message=message, default=default or "", validate=validate).execute()
    except KeyboardInterrupt as exc:  # pragma: no cover - user cancel
        raise UserAbort("User cancelled the prompt.") from exc
    return (result or "").strip()


def confirm(message: str, default: bool = False) -> bool:
    _ensure_tty()
    try:
        return bool(inquirer.confirm(message=message, default=default).execute())
    except KeyboardInterrupt as exc:  # pragma: no cover - user cancel
        raise UserAbort("User cancelled the prompt.") from exc


__all__ = ["text_input", "confirm"]
