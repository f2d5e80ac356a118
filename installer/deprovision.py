#!/usr/bin/env python3
"""Remove the satellite and LED services from the host.

Best-effort and idempotent: stops and disables both units, deletes their
unit files and reloads systemd. ``--purge`` also deletes the checkout.

Examples:
    Remove the services only::

        $ python3 -m installer.deprovision  # doctest: +SKIP

    Remove the services and the cloned repo with its venvs::

        $ python3 -m installer.deprovision --purge  # doctest: +SKIP
"""
from __future__ import annotations

import argparse
import subprocess

from installer import console, units
from installer.commands import sudo
from installer.errors import ProvisionError
from installer.setup_satellite import build_context, ensure_not_root, load_config

UNITS = (units.SATELLITE_SERVICE, units.LED_SERVICE)


def stop_and_disable_units(run=subprocess.run) -> None:
    for unit in UNITS:
        run(sudo("systemctl", "stop", unit), check=False)
        run(sudo("systemctl", "disable", unit), check=False)
        path = units.SYSTEMD_DIR / unit
        if path.exists():
            run(sudo("rm", "-f", str(path)), check=False)
    run(sudo("systemctl", "daemon-reload"), check=False)


def remove_install_dir(install_dir, run=subprocess.run) -> None:
    if install_dir.exists():
        run(["rm", "-rf", str(install_dir)], check=False)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Deprovision the Wyoming satellite")
    parser.add_argument("--purge", action="store_true", help="Also delete the cloned repository and its venvs")
    parser.add_argument("--config", help="TOML settings file (default: satellite.toml)")
    ns = parser.parse_args(argv)
    try:
        ensure_not_root()
        ctx = build_context(load_config(ns.config))
    except ProvisionError as exc:
        console.msg_error(str(exc))
        return 1
    console.msg_info("Stopping and removing services...")
    stop_and_disable_units()
    if ns.purge:
        console.msg_info(f"Removing {ctx.install_dir}...")
        remove_install_dir(ctx.install_dir)
    console.msg_ok("Deprovision complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
