"""Operator-facing output for the satellite installer.

All narration goes to stderr so stdout stays free for values a caller
captures (see :mod:`installer.audio_devices`).

Examples:
    >>> msg_info("Updating OS packages...")  # doctest: +SKIP
"""
from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from installer.errors import InputClosedError

console = Console(stderr=True, highlight=False)


def msg_info(message: str) -> None:
    console.print(f"[bold blue][INFO][/] {escape(message)}")


def msg_ok(message: str) -> None:
    console.print(f"[bold green][OK][/] {escape(message)}")


def msg_warn(message: str) -> None:
    console.print(f"[bold yellow][WARN][/] {escape(message)}")


def msg_error(message: str) -> None:
    console.print(f"[bold red][ERROR][/] {escape(message)}")


def ask_text(prompt: str) -> str:
    """Read one line from the operator; the prompt is shown on stderr."""
    try:
        return Prompt.ask(prompt, console=console, default="", show_default=False)
    except EOFError:
        raise InputClosedError(f"Input closed while waiting for: {prompt}") from None


def ask_yes_no(question: str) -> bool:
    try:
        return Confirm.ask(question, console=console, default=False)
    except EOFError:
        raise InputClosedError(f"Input closed while waiting for: {question}") from None
