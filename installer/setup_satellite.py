#!/usr/bin/env python3
"""Provision a Raspberry Pi + ReSpeaker 2Mic HAT as a Wyoming satellite.

Run as a regular user; commands that need root go through ``sudo``::

    $ python3 -m installer.setup_satellite  # doctest: +SKIP

Stages run in order and the first failing command aborts the run. Cloning
and venv creation are skipped when their directories already exist, so the
installer can be re-run after a failure or after the driver reboot.

Examples:
    >>> cfg = {"satellite": {"name": "kitchen", "install_dir": "/srv/sat"}}
    >>> ctx = build_context(cfg)
    >>> ctx.name, str(ctx.install_dir)
    ('kitchen', '/srv/sat')
"""
from __future__ import annotations

import argparse
import os
import pathlib
import subprocess
import tomllib
from dataclasses import dataclass
from typing import Callable

from installer import console, units
from installer.audio_devices import select_device
from installer.commands import run_checked, sudo
from installer.errors import ConfigError, PrivilegeError, ProvisionError

CONFIG_PATH = pathlib.Path(__file__).resolve().parent.parent / "satellite.toml"
USER_CONFIG_PATH = pathlib.Path("~/.config/wyoming-satellite/satellite.toml")
REPO_URL = "https://github.com/rhasspy/wyoming-satellite.git"
DEFAULT_NAME = "my satellite"
DEFAULT_INSTALL_DIR = "~/wyoming-satellite"
APT_PACKAGES = ["git", "python3-venv", "python3-spidev", "python3-gpiozero"]
PIP_FIND_LINKS = "https://synesthesiam.github.io/prebuilt-apps/"
REQUIREMENTS = [
    "requirements.txt",
    "requirements_audio_enhancement.txt",
    "requirements_vad.txt",
]
WYOMING_VERSION = "1.5.2"
DRIVER_SCRIPT = "etc/install-respeaker-drivers.sh"
ASOUND_CARDS = pathlib.Path("/proc/asound/cards")


@dataclass
class InstallContext:
    """State threaded through every stage of one run."""

    install_dir: pathlib.Path
    name: str = DEFAULT_NAME
    repo_url: str = REPO_URL
    wyoming_version: str = WYOMING_VERSION
    input_device: str | None = None
    output_device: str | None = None
    leds_enabled: bool = False
    cloned: bool = False
    venv_created: bool = False

    @property
    def venv_dir(self) -> pathlib.Path:
        return self.install_dir / ".venv"

    @property
    def led_venv_dir(self) -> pathlib.Path:
        return self.install_dir / "examples" / ".venv"


def load_config(path: pathlib.Path | str | None = None) -> dict:
    """Load TOML settings.

    Args:
        path: Explicit file. When omitted, the repo-local ``satellite.toml``
            and then ``~/.config/wyoming-satellite/satellite.toml`` are tried,
            and an empty config is returned if neither exists.

    Raises:
        ConfigError: ``path`` was given but cannot be read or parsed.

    Examples:
        >>> p = pathlib.Path('sample.toml')
        >>> _ = p.write_text('[satellite]\\nname = "den"')
        >>> load_config(p)['satellite']['name']
        'den'
    """
    if path is not None:
        candidates = [pathlib.Path(path)]
    else:
        candidates = [CONFIG_PATH, USER_CONFIG_PATH.expanduser()]
    for cand in candidates:
        try:
            with open(cand, "rb") as fh:
                return tomllib.load(fh)
        except FileNotFoundError:
            continue
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid config {cand}: {exc}") from exc
    if path is not None:
        raise ConfigError(f"No config found at: {path}")
    return {}


def build_context(config: dict) -> InstallContext:
    """Create the run context from parsed settings."""
    sat = config.get("satellite", {})
    leds = config.get("leds", {})
    name = str(sat.get("name", DEFAULT_NAME))
    # ExecStart values are single-quoted and systemd expands % specifiers
    if "'" in name or "%" in name:
        raise ConfigError(f"Satellite name may not contain ' or %: {name!r}")
    install_dir = pathlib.Path(str(sat.get("install_dir", DEFAULT_INSTALL_DIR))).expanduser()
    if "%" in str(install_dir) or any(ch.isspace() for ch in str(install_dir)):
        raise ConfigError(f"Install directory may not contain whitespace or %: {str(install_dir)!r}")
    return InstallContext(
        install_dir=install_dir,
        name=name,
        repo_url=str(sat.get("repo_url", REPO_URL)),
        wyoming_version=str(leds.get("wyoming_version", WYOMING_VERSION)),
    )


def ensure_not_root(geteuid: Callable[[], int] | None = None) -> None:
    """Refuse to run as root.

    Examples:
        >>> ensure_not_root(lambda: 1000)
        >>> ensure_not_root(lambda: 0)
        Traceback (most recent call last):
        ...
        installer.errors.PrivilegeError: Do not run this installer as root. Run it as a regular user; it will use sudo where needed.
    """
    if (geteuid or os.geteuid)() == 0:
        raise PrivilegeError(
            "Do not run this installer as root. "
            "Run it as a regular user; it will use sudo where needed."
        )


def ensure_sudo(run=subprocess.run) -> None:
    """Prompt for (or refresh) the sudo ticket up front."""
    console.msg_info("Checking sudo access...")
    run_checked(sudo("-v"), run=run)


def update_os(run=subprocess.run) -> None:
    console.msg_info("Updating OS packages...")
    run_checked(sudo("apt-get", "update", "-y"), run=run)
    run_checked(sudo("apt-get", "upgrade", "-y"), run=run)
    console.msg_ok("OS updated successfully.")


def install_dependencies(run=subprocess.run) -> None:
    console.msg_info("Installing dependencies...")
    run_checked(sudo("apt-get", "install", "-y", *APT_PACKAGES), run=run)
    console.msg_ok("Dependencies installed successfully.")


def clone_repository(ctx: InstallContext, run=subprocess.run) -> bool:
    """Clone the satellite repo into ``ctx.install_dir`` unless present.

    Returns:
        True if ``git clone`` ran.

    Examples:
        >>> ctx = InstallContext(pathlib.Path('/nonexistent/sat'))
        >>> clone_repository(ctx, lambda cmd, check: None)  # doctest: +SKIP
        True
    """
    if ctx.install_dir.exists():
        console.msg_warn(f"{ctx.install_dir} already exists; skipping clone.")
        return False
    console.msg_info("Cloning Wyoming Satellite repository...")
    run_checked(["git", "clone", ctx.repo_url, str(ctx.install_dir)], run=run)
    ctx.cloned = True
    console.msg_ok("Repository cloned successfully.")
    return True


def drivers_present(cards: pathlib.Path | None = None) -> bool:
    """Return True if a seeed sound card is already registered with ALSA."""
    try:
        return "seeed" in (cards or ASOUND_CARDS).read_text().lower()
    except OSError:
        return False


def install_drivers(ctx: InstallContext, run=subprocess.run) -> None:
    """Run the bundled ReSpeaker driver installer and reboot."""
    console.msg_info("Installing ReSpeaker 2Mic HAT drivers...")
    run_checked(sudo("bash", DRIVER_SCRIPT), run=run, cwd=str(ctx.install_dir))
    console.msg_ok("Drivers installed.")
    console.msg_warn("Rebooting now. Run the installer again after the reboot to continue.")
    run_checked(sudo("reboot"), run=run)


def _create_venv(venv_dir: pathlib.Path, run, system_site_packages: bool = False) -> bool:
    if venv_dir.exists():
        console.msg_warn(f"Virtual environment {venv_dir} already exists; skipping creation.")
        return False
    cmd = ["python3", "-m", "venv"]
    if system_site_packages:
        cmd.append("--system-site-packages")
    run_checked([*cmd, str(venv_dir)], run=run)
    return True


def setup_venv(ctx: InstallContext, run=subprocess.run) -> None:
    """Create the satellite venv and install its requirements.

    Installation runs even when the venv already exists; pip resolves
    already-satisfied requirements without changes.
    """
    console.msg_info("Setting up Python virtual environment...")
    ctx.venv_created = _create_venv(ctx.venv_dir, run)
    pip = str(ctx.venv_dir / "bin" / "pip")
    run_checked([pip, "install", "--upgrade", "pip", "wheel", "setuptools"], run=run)
    cmd = [pip, "install", "-f", PIP_FIND_LINKS]
    for req in REQUIREMENTS:
        cmd += ["-r", str(ctx.install_dir / req)]
    run_checked(cmd, run=run)
    console.msg_ok("Virtual environment set up successfully.")


def setup_led_venv(ctx: InstallContext, run=subprocess.run) -> None:
    """Create the LED example venv with access to apt's spidev/gpiozero."""
    console.msg_info("Setting up LED service environment...")
    _create_venv(ctx.led_venv_dir, run, system_site_packages=True)
    pip = str(ctx.led_venv_dir / "bin" / "pip3")
    run_checked([pip, "install", "--upgrade", "pip", "wheel", "setuptools"], run=run)
    run_checked([pip, "install", f"wyoming=={ctx.wyoming_version}"], run=run)
    console.msg_ok("LED service environment ready.")


def configure_audio(
    ctx: InstallContext,
    run=subprocess.run,
    ask: Callable[[str], str] = console.ask_text,
    max_attempts: int | None = None,
) -> None:
    console.msg_info("Configuring audio devices...")
    ctx.input_device = select_device("input", run=run, ask=ask, max_attempts=max_attempts)
    ctx.output_device = select_device("output", run=run, ask=ask, max_attempts=max_attempts)
    console.msg_ok(f"Audio devices configured: in={ctx.input_device} out={ctx.output_device}")


def _satellite_unit(ctx: InstallContext) -> units.ServiceUnit:
    if ctx.input_device is None or ctx.output_device is None:
        raise ProvisionError("Audio devices must be selected before installing the service")
    return units.satellite_unit(
        ctx.install_dir,
        ctx.name,
        ctx.input_device,
        ctx.output_device,
        requires=units.LED_SERVICE if ctx.leds_enabled else None,
    )


def setup_service(ctx: InstallContext, run=subprocess.run) -> pathlib.Path:
    """Install and start the satellite unit."""
    console.msg_info("Setting up Wyoming Satellite service...")
    path = units.install_unit(_satellite_unit(ctx), run)
    console.msg_ok("Wyoming Satellite service set up successfully.")
    return path


def setup_led_service(ctx: InstallContext, run=subprocess.run) -> pathlib.Path:
    """Install the LED unit and rewire the satellite unit to require it."""
    console.msg_info("Setting up LED control service...")
    path = units.install_unit(units.led_unit(ctx.install_dir), run)
    ctx.leds_enabled = True
    console.msg_info("Updating Wyoming Satellite service to use the LED service...")
    units.write_unit(_satellite_unit(ctx), run)
    units.systemctl("daemon-reload", run=run)
    units.systemctl("restart", units.SATELLITE_SERVICE, run=run)
    console.msg_ok("LED control service set up successfully.")
    return path


def provision(
    ctx: InstallContext,
    run=subprocess.run,
    ask: Callable[[str], str] = console.ask_text,
    confirm: Callable[[str], bool] = console.ask_yes_no,
    geteuid: Callable[[], int] | None = None,
    max_attempts: int | None = None,
) -> bool:
    """Run every stage against ``ctx``.

    Returns:
        False if the run stopped for the driver reboot, True once the
        services are installed.
    """
    ensure_not_root(geteuid)
    ensure_sudo(run)
    update_os(run)
    install_dependencies(run)
    clone_repository(ctx, run)
    if drivers_present():
        console.msg_warn("ReSpeaker sound card already detected; skipping driver installation.")
    elif confirm("Install ReSpeaker 2Mic HAT drivers? This reboots the Pi when done"):
        install_drivers(ctx, run)
        return False
    setup_venv(ctx, run)
    configure_audio(ctx, run, ask, max_attempts=max_attempts)
    setup_service(ctx, run)
    if confirm("Set up the 2Mic LED service?"):
        setup_led_venv(ctx, run)
        setup_led_service(ctx, run)
    console.msg_ok("Wyoming Satellite installation and configuration complete!")
    return True


def main(argv: list[str] | None = None) -> int:
    """Entry point; the only place a failure becomes an exit code."""
    parser = argparse.ArgumentParser(description="Install a Wyoming satellite on a Raspberry Pi")
    parser.add_argument("--config", help="TOML settings file (default: satellite.toml)")
    ns = parser.parse_args(argv)
    try:
        ctx = build_context(load_config(ns.config))
        provision(ctx)
    except ProvisionError as exc:
        console.msg_error(str(exc))
        return 1
    except EOFError:
        console.msg_error("Input closed before the installer finished.")
        return 1
    except KeyboardInterrupt:
        console.msg_error("Interrupted.")
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
