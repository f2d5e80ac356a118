import pathlib
import subprocess
import sys

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from installer.commands import run_checked
from installer.errors import ExternalCommandError


def test_run_checked_wraps_called_process_error():
    def fake_run(cmd, check):
        raise subprocess.CalledProcessError(2, cmd)

    with pytest.raises(ExternalCommandError) as info:
        run_checked(["git", "clone"], run=fake_run)
    assert info.value.returncode == 2


@pytest.mark.parametrize("error", [FileNotFoundError, PermissionError, OSError])
def test_run_checked_wraps_exec_failures(error):
    def fake_run(cmd, check):
        raise error("cannot exec")

    with pytest.raises(ExternalCommandError) as info:
        run_checked(["arecord", "-L"], run=fake_run)
    assert info.value.returncode is None
    assert info.value.cmd == ["arecord", "-L"]


def test_run_checked_nonzero_returncode_without_raise():
    class Proc:
        returncode = 1

    with pytest.raises(ExternalCommandError):
        run_checked(["sudo", "-v"], run=lambda cmd, check: Proc())
