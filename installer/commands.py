"""Checked execution of external commands.

Examples:
    >>> calls = []
    >>> _ = run_checked(["true"], run=lambda cmd, check: calls.append(cmd))
    >>> calls
    [['true']]
    >>> sudo("systemctl", "daemon-reload")
    ['sudo', 'systemctl', 'daemon-reload']
"""
from __future__ import annotations

import subprocess

from installer.errors import ExternalCommandError


def sudo(*args: str) -> list[str]:
    return ["sudo", *args]


def run_checked(cmd: list[str], run=subprocess.run, **kwargs):
    """Run ``cmd`` and raise :class:`ExternalCommandError` unless it succeeds.

    Args:
        cmd: Command list.
        run: Command runner, defaults to :func:`subprocess.run`.
        **kwargs: Passed through to ``run`` (``cwd``, ``input``,
            ``capture_output``...).

    Returns:
        Whatever ``run`` returned.
    """
    try:
        proc = run(cmd, check=True, **kwargs)
    except subprocess.CalledProcessError as exc:
        raise ExternalCommandError(cmd, exc.returncode) from exc
    except OSError as exc:
        raise ExternalCommandError(cmd) from exc
    returncode = getattr(proc, "returncode", 0)
    if returncode:
        raise ExternalCommandError(cmd, returncode)
    return proc
