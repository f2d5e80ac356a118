import pathlib
import sys

import pytest

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from installer.audio_devices import (
    AudioDevice,
    enumerate_devices,
    main,
    parse_devices,
    parse_selection,
    select_device,
)
from installer.errors import (
    EmptyEnumerationError,
    ExternalCommandError,
    InvalidDeviceClassError,
    InvalidSelectionError,
    SelectionExhaustedError,
)

ARECORD_L = """null
    Discard all samples (playback) or generate zero samples (capture)
default
    Default ALSA Output
dmix:CARD=seeed2micvoicec,DEV=0
    seeed-2mic-voicecard, bcm2835-i2s-wm8960-hifi wm8960-hifi-0
    Direct sample mixing device
hw:CARD=seeed2micvoicec,DEV=0
    seeed-2mic-voicecard, bcm2835-i2s-wm8960-hifi wm8960-hifi-0
    Direct hardware device without any conversions
plughw:CARD=seeed2micvoicec,DEV=0
    seeed-2mic-voicecard, bcm2835-i2s-wm8960-hifi wm8960-hifi-0
    Hardware device with all software conversions
sysdefault:CARD=seeed2micvoicec
    seeed-2mic-voicecard, bcm2835-i2s-wm8960-hifi wm8960-hifi-0
"""


class Proc:
    def __init__(self, stdout="", returncode=0):
        self.stdout = stdout
        self.returncode = returncode


def make_run(outputs, calls=None):
    def fake_run(cmd, check, **kwargs):
        if calls is not None:
            calls.append(cmd)
        return Proc(outputs.get(cmd[0], ""))
    return fake_run


def make_ask(answers, prompts=None):
    it = iter(answers)

    def ask(prompt):
        if prompts is not None:
            prompts.append(prompt)
        return next(it)
    return ask


def test_parse_devices_keeps_only_hardware_entries():
    devices = parse_devices(ARECORD_L)
    assert [d.identifier for d in devices] == [
        "hw:CARD=seeed2micvoicec,DEV=0",
        "plughw:CARD=seeed2micvoicec,DEV=0",
    ]
    assert devices[0].label.startswith("seeed-2mic-voicecard")


def test_parse_devices_takes_first_token_only():
    devices = parse_devices("hw:0,0 trailing words\nplughw:1,0\n")
    assert devices == [AudioDevice("hw:0,0"), AudioDevice("plughw:1,0")]


def test_parse_devices_ignores_indented_hw_text():
    assert parse_devices("default\n    hw:0,0 mentioned in a description\n") == []


def test_enumerate_devices_uses_class_command():
    calls = []
    enumerate_devices("input", run=make_run({}, calls))
    enumerate_devices("output", run=make_run({}, calls))
    assert calls == [["arecord", "-L"], ["aplay", "-L"]]


def test_enumerate_devices_rejects_unknown_class():
    with pytest.raises(InvalidDeviceClassError):
        enumerate_devices("speaker", run=make_run({}))


def test_enumerate_devices_failing_command_raises():
    def fake_run(cmd, check, **kwargs):
        return Proc(returncode=1)

    with pytest.raises(ExternalCommandError):
        enumerate_devices("input", run=fake_run)


def test_parse_selection_rejects_blank_and_out_of_range():
    devices = [AudioDevice("hw:0,0")]
    for answer in ("", "  ", "0", "2", "abc", "-1"):
        with pytest.raises(InvalidSelectionError):
            parse_selection(answer, devices)


def test_select_device_returns_chosen_identifier():
    run = make_run({"arecord": ARECORD_L})
    assert select_device("input", run=run, ask=make_ask(["2"])) == "plughw:CARD=seeed2micvoicec,DEV=0"


def test_select_device_empty_enumeration_fails_without_prompt():
    prompts = []
    run = make_run({"aplay": "null\n    Discard all samples\ndefault\n"})
    with pytest.raises(EmptyEnumerationError) as info:
        select_device("output", run=run, ask=make_ask([], prompts))
    assert "output" in str(info.value)
    assert prompts == []


def test_select_device_reprompts_until_valid():
    prompts = []
    run = make_run({"arecord": ARECORD_L})
    chosen = select_device("input", run=run, ask=make_ask(["", "9", "x", "1"], prompts))
    assert chosen == "hw:CARD=seeed2micvoicec,DEV=0"
    assert len(prompts) == 4


def test_select_device_bounded_attempts_terminate():
    run = make_run({"arecord": ARECORD_L})
    with pytest.raises(SelectionExhaustedError):
        select_device("input", run=run, ask=make_ask(["", "7", "1"]), max_attempts=2)


def test_main_prints_only_identifier_on_stdout(monkeypatch, capsys):
    monkeypatch.setattr("installer.audio_devices.select_device", lambda kind: "hw:CARD=x,DEV=0")
    assert main(["input"]) == 0
    assert capsys.readouterr().out == "hw:CARD=x,DEV=0\n"


def test_main_reports_empty_enumeration(monkeypatch, capsys):
    def boom(kind):
        raise EmptyEnumerationError(kind)

    monkeypatch.setattr("installer.audio_devices.select_device", boom)
    assert main(["output"]) == 1
    assert capsys.readouterr().out == ""


def test_main_reports_closed_input(monkeypatch, capsys):
    def closed(kind):
        raise EOFError

    monkeypatch.setattr("installer.audio_devices.select_device", closed)
    assert main(["input"]) == 1
    assert capsys.readouterr().out == ""
