import pathlib
import sys

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from installer import console
from installer.errors import InputClosedError, ProvisionError


def _closed(*args, **kwargs):
    raise EOFError


def test_ask_text_closed_input_raises_provision_error(monkeypatch):
    monkeypatch.setattr("installer.console.Prompt.ask", _closed)
    with pytest.raises(InputClosedError) as info:
        console.ask_text("Select input device [1-2]")
    assert isinstance(info.value, ProvisionError)


def test_ask_yes_no_closed_input_raises_provision_error(monkeypatch):
    monkeypatch.setattr("installer.console.Confirm.ask", _closed)
    with pytest.raises(InputClosedError):
        console.ask_yes_no("Set up the 2Mic LED service?")


def test_msg_error_goes_to_stderr(capsys):
    console.msg_error("apt-get [update] failed")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "[ERROR]" in captured.err
    assert "apt-get [update] failed" in captured.err
