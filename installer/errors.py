"""Error types raised by installer stages.

Every fatal condition derives from :class:`ProvisionError`; only the
top-level ``main`` turns one into a diagnostic and exit code.
"""
from __future__ import annotations


class ProvisionError(Exception):
    """Fatal provisioning failure."""


class PrivilegeError(ProvisionError):
    pass


class ConfigError(ProvisionError):
    pass


class ExternalCommandError(ProvisionError):
    """An external command exited non-zero or could not be started."""

    def __init__(self, cmd: list[str], returncode: int | None = None) -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        if returncode is None:
            detail = "could not be started"
        else:
            detail = f"exited with status {returncode}"
        super().__init__(f"Command {' '.join(self.cmd)!r} {detail}")


class InvalidDeviceClassError(ProvisionError):
    pass


class EmptyEnumerationError(ProvisionError):
    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"No {kind} devices found")


class SelectionExhaustedError(ProvisionError):
    pass


class InputClosedError(ProvisionError):
    """stdin reached end-of-file while waiting for an answer."""


class InvalidSelectionError(ValueError):
    """Operator answer does not map to a listed device; recoverable."""
