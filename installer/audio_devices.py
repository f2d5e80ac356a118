#!/usr/bin/env python3
"""Enumerate ALSA PCMs and let the operator pick one.

Only hardware-backed entries (``hw:`` and ``plughw:``) are offered; plugin
aliases such as ``default`` or ``dmix`` are skipped. The menu and any
warnings go to stderr; when run as a command the chosen identifier is the
only thing printed on stdout, so it can be captured::

    $ MIC=$(python3 -m installer.audio_devices input)  # doctest: +SKIP

Examples:
    >>> out = "null\\n    Discard all samples\\nhw:CARD=seeed2micvoicec,DEV=0\\n    seeed-2mic-voicecard\\n"
    >>> [d.identifier for d in parse_devices(out)]
    ['hw:CARD=seeed2micvoicec,DEV=0']
"""
from __future__ import annotations

import argparse
import subprocess
from dataclasses import dataclass
from typing import Callable

from rich.markup import escape

from installer import console
from installer.commands import run_checked
from installer.errors import (
    EmptyEnumerationError,
    InvalidDeviceClassError,
    InvalidSelectionError,
    ProvisionError,
    SelectionExhaustedError,
)

HW_PREFIXES = ("hw:", "plughw:")
LIST_COMMANDS = {
    "input": ["arecord", "-L"],
    "output": ["aplay", "-L"],
}


@dataclass(frozen=True)
class AudioDevice:
    identifier: str
    label: str = ""


def list_command(kind: str) -> list[str]:
    """Return the enumeration command for ``kind`` (``input`` or ``output``)."""
    try:
        return list(LIST_COMMANDS[kind])
    except KeyError:
        raise InvalidDeviceClassError(
            f"Invalid device class {kind!r}; expected 'input' or 'output'"
        ) from None


def parse_devices(output: str) -> list[AudioDevice]:
    """Parse ``arecord -L``/``aplay -L`` text into hardware devices.

    PCM names start at column 0; their description lines are indented. The
    label is the first description line following a kept name.
    """
    devices: list[AudioDevice] = []
    pending: str | None = None
    for line in output.splitlines():
        if not line.strip():
            continue
        if line[0].isspace():
            if pending is not None:
                devices.append(AudioDevice(pending, line.strip()))
                pending = None
            continue
        if pending is not None:
            devices.append(AudioDevice(pending))
            pending = None
        if line.startswith(HW_PREFIXES):
            pending = line.split()[0]
    if pending is not None:
        devices.append(AudioDevice(pending))
    return devices


def enumerate_devices(kind: str, run=subprocess.run) -> list[AudioDevice]:
    """Run the enumeration command for ``kind`` and parse its output."""
    cmd = list_command(kind)
    proc = run_checked(cmd, run=run, capture_output=True, text=True)
    return parse_devices(getattr(proc, "stdout", "") or "")


def parse_selection(answer: str, devices: list[AudioDevice]) -> AudioDevice:
    """Map a 1-based menu answer to a device.

    Raises:
        InvalidSelectionError: Blank, non-numeric or out-of-range answer.

    Examples:
        >>> parse_selection("1", [AudioDevice("hw:0,0")]).identifier
        'hw:0,0'
        >>> parse_selection("2", [AudioDevice("hw:0,0")])
        Traceback (most recent call last):
        ...
        installer.errors.InvalidSelectionError: Selection must be between 1 and 1
    """
    answer = (answer or "").strip()
    if not answer:
        raise InvalidSelectionError("No selection made")
    try:
        index = int(answer)
    except ValueError:
        raise InvalidSelectionError(f"{answer!r} is not a number") from None
    if not 1 <= index <= len(devices):
        raise InvalidSelectionError(f"Selection must be between 1 and {len(devices)}")
    return devices[index - 1]


def show_menu(kind: str, devices: list[AudioDevice]) -> None:
    console.msg_info(f"Available {kind} devices:")
    for number, device in enumerate(devices, start=1):
        if device.label:
            console.console.print(f"  {number}) {escape(device.identifier)}  [dim]{escape(device.label)}[/]")
        else:
            console.console.print(f"  {number}) {escape(device.identifier)}")


def select_device(
    kind: str,
    run=subprocess.run,
    ask: Callable[[str], str] = console.ask_text,
    max_attempts: int | None = None,
) -> str:
    """Enumerate ``kind`` devices and return the identifier the operator picks.

    Args:
        kind: ``input`` or ``output``.
        run: Command runner used for enumeration.
        ask: Reads one answer for a prompt.
        max_attempts: Give up after this many invalid answers; ``None`` keeps
            asking forever.

    Raises:
        EmptyEnumerationError: No hardware devices of that class.
        SelectionExhaustedError: ``max_attempts`` invalid answers in a row.

    Examples:
        >>> out = "hw:CARD=a,DEV=0\\nplughw:CARD=a,DEV=0\\n"
        >>> class P: stdout = out
        >>> select_device("output", run=lambda cmd, **kw: P(), ask=lambda p: "2")  # doctest: +SKIP
        'plughw:CARD=a,DEV=0'
    """
    devices = enumerate_devices(kind, run=run)
    if not devices:
        raise EmptyEnumerationError(kind)
    show_menu(kind, devices)
    attempts = 0
    while True:
        try:
            return parse_selection(ask(f"Select {kind} device [1-{len(devices)}]"), devices).identifier
        except InvalidSelectionError as exc:
            attempts += 1
            console.msg_warn(f"Invalid selection: {exc}. Please try again.")
            if max_attempts is not None and attempts >= max_attempts:
                raise SelectionExhaustedError(
                    f"No valid {kind} device selected after {attempts} attempts"
                ) from exc


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Pick an ALSA device and print its identifier")
    parser.add_argument("kind", help="device class: input or output")
    ns = parser.parse_args(argv)
    try:
        identifier = select_device(ns.kind)
    except ProvisionError as exc:
        console.msg_error(str(exc))
        return 1
    except EOFError:
        console.msg_error("Input closed before a device was selected.")
        return 1
    except KeyboardInterrupt:
        return 130
    print(identifier)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
