"""systemd unit definitions for the satellite and LED services.

Units are built as :class:`ServiceUnit` records and serialized by
:func:`render_unit`; adding a dependency is a change to the record, never
to the rendered text.

Examples:
    >>> unit = ServiceUnit("demo.service", "Demo", "/bin/true", "/tmp")
    >>> print(render_unit(unit))  # doctest: +NORMALIZE_WHITESPACE
    [Unit]
    Description=Demo
    <BLANKLINE>
    [Service]
    Type=simple
    ExecStart=/bin/true
    WorkingDirectory=/tmp
    Restart=always
    RestartSec=1
    <BLANKLINE>
    [Install]
    WantedBy=default.target
"""
from __future__ import annotations

import os
import pathlib
import subprocess
from dataclasses import dataclass, field

from installer.commands import run_checked, sudo

SYSTEMD_DIR = pathlib.Path("/etc/systemd/system")
SATELLITE_SERVICE = "wyoming-satellite.service"
LED_SERVICE = "2mic_leds.service"
SATELLITE_URI = "tcp://0.0.0.0:10700"
EVENT_URI = "tcp://127.0.0.1:10500"
MIC_FORMAT = "-r 16000 -c 1 -f S16_LE -t raw"
SND_FORMAT = "-r 22050 -c 1 -f S16_LE -t raw"


@dataclass
class ServiceUnit:
    name: str
    description: str
    exec_start: str
    working_directory: str
    restart: str = "always"
    restart_sec: int = 1
    wants: list[str] = field(default_factory=list)
    after: list[str] = field(default_factory=list)
    requires: str | None = None
    wanted_by: str = "default.target"


def quote(value: str) -> str:
    """Wrap a flag value in single quotes for ``ExecStart``."""
    return f"'{value}'"


def render_unit(unit: ServiceUnit) -> str:
    """Serialize ``unit`` to unit-file text."""
    lines = ["[Unit]", f"Description={unit.description}"]
    if unit.wants:
        lines.append(f"Wants={' '.join(unit.wants)}")
    after = list(unit.after)
    if unit.requires and unit.requires not in after:
        after.append(unit.requires)
    if after:
        lines.append(f"After={' '.join(after)}")
    if unit.requires:
        lines.append(f"Requires={unit.requires}")
    lines += [
        "",
        "[Service]",
        "Type=simple",
        f"ExecStart={unit.exec_start}",
        f"WorkingDirectory={unit.working_directory}",
        f"Restart={unit.restart}",
        f"RestartSec={unit.restart_sec}",
        "",
        "[Install]",
        f"WantedBy={unit.wanted_by}",
    ]
    return "\n".join(lines) + "\n"


def satellite_command(
    install_dir: pathlib.Path,
    name: str,
    input_device: str,
    output_device: str,
    event_uri: str | None = None,
) -> str:
    """Return the ``ExecStart`` line for the satellite.

    Examples:
        >>> satellite_command(pathlib.Path("/home/pi/ws"), "pi", "hw:0", "hw:1")
        "/home/pi/ws/script/run --name 'pi' --uri 'tcp://0.0.0.0:10700' --mic-command 'arecord -D hw:0 -r 16000 -c 1 -f S16_LE -t raw' --snd-command 'aplay -D hw:1 -r 22050 -c 1 -f S16_LE -t raw'"
    """
    parts = [
        str(install_dir / "script" / "run"),
        "--name", quote(name),
        "--uri", quote(SATELLITE_URI),
        "--mic-command", quote(f"arecord -D {input_device} {MIC_FORMAT}"),
        "--snd-command", quote(f"aplay -D {output_device} {SND_FORMAT}"),
    ]
    if event_uri:
        parts += ["--event-uri", quote(event_uri)]
    return " ".join(parts)


def satellite_unit(
    install_dir: pathlib.Path,
    name: str,
    input_device: str,
    output_device: str,
    requires: str | None = None,
) -> ServiceUnit:
    """Build the satellite unit; ``requires`` also wires the event endpoint."""
    return ServiceUnit(
        name=SATELLITE_SERVICE,
        description="Wyoming Satellite",
        exec_start=satellite_command(
            install_dir,
            name,
            input_device,
            output_device,
            event_uri=EVENT_URI if requires else None,
        ),
        working_directory=str(install_dir),
        wants=["network-online.target"],
        after=["network-online.target"],
        requires=requires or None,
    )


def led_unit(install_dir: pathlib.Path) -> ServiceUnit:
    examples = install_dir / "examples"
    return ServiceUnit(
        name=LED_SERVICE,
        description="2Mic LEDs",
        exec_start=(
            f"{examples / '.venv' / 'bin' / 'python3'} {examples / '2mic_service.py'}"
            f" --uri {quote(EVENT_URI)}"
        ),
        working_directory=str(examples),
    )


def write_unit(unit: ServiceUnit, run=subprocess.run) -> pathlib.Path:
    """Write ``unit`` under :data:`SYSTEMD_DIR`, replacing any previous file.

    Writes directly when the directory is writable, otherwise pipes the
    text through ``sudo tee``.
    """
    path = SYSTEMD_DIR / unit.name
    content = render_unit(unit)
    if os.access(SYSTEMD_DIR, os.W_OK):
        path.write_text(content)
    else:
        run_checked(
            sudo("tee", str(path)),
            run=run,
            input=content,
            text=True,
            stdout=subprocess.DEVNULL,
        )
    return path


def systemctl(*args: str, run=subprocess.run) -> None:
    run_checked(sudo("systemctl", *args), run=run)


def install_unit(unit: ServiceUnit, run=subprocess.run) -> pathlib.Path:
    """Write ``unit``, reload systemd, enable it and restart it.

    The restart makes a rewritten unit take effect when it is already
    running from an earlier install.
    """
    path = write_unit(unit, run)
    systemctl("daemon-reload", run=run)
    systemctl("enable", "--now", unit.name, run=run)
    systemctl("restart", unit.name, run=run)
    return path
