"""The user-facing commands: init, up, down, status, logs, ssh and reset."""

from __future__ import annotations

import glob
import sys
import time
from pathlib import Path

from termcolor import colored

from fireup.command import CommandError, get_config_dir, run_command, run_interactive
from fireup.config import init_config, read_config
from fireup.network import GUEST_IP
from fireup.options import VmOptions, options_from_config
from fireup.prepare import prepare
from fireup.process import is_running, start, stop
from fireup.vm import setup


def down() -> None:
    """Stop the Firecracker microVM."""
    stop()


def init() -> None:
    """Create ``fire.toml`` in the current directory."""
    init_config()
    print(
        "[+] Firecracker MicroVM configuration initialized successfully: "
        f"{colored('`fire.toml`', 'cyan')} created 🎉"
    )
    print(f"[✓] Start your MicroVM by running: {colored('fireup', 'green')}")


def logs(follow: bool) -> None:
    """Show the Firecracker log, following it if asked."""
    logfile = f"{get_config_dir()}/firecracker.log"
    run_interactive("tail", ["-f", logfile] if follow else [logfile])


def reset() -> None:
    """After confirmation, stop the VM and delete every ext4 image."""
    print(
        "Are you sure you want to reset? This will remove all ext4 files. "
        f"Type '{colored('yes', 'light_green')}' to confirm:"
    )
    try:
        answer = sys.stdin.readline()
    except OSError as exc:
        raise OSError(f"Failed to read input: {exc}") from exc
    if answer.strip() != "yes":
        print("Reset cancelled.")
        return

    down()

    app_dir = get_config_dir()
    for path in glob.glob(f"{app_dir}/*.ext4"):
        try:
            Path(path).unlink()
        except OSError as exc:
            raise OSError(f"Failed to remove file: {exc}") from exc

    print("[+] Reset complete. All ext4 files have been removed.")
    print(
        f"[+] You can now run '{colored('fireup', 'light_green')}' "
        "to start a new Firecracker MicroVM."
    )


def ssh() -> None:
    """Open an SSH session to the guest as root."""
    app_dir = get_config_dir()
    keys = sorted(glob.glob(f"{app_dir}/id_rsa"))
    if not keys:
        raise FileNotFoundError("No SSH key file found")
    run_interactive(
        "ssh",
        [
            "-i",
            keys[-1],
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "UserKnownHostsFile=/dev/null",
            f"root@{GUEST_IP}",
        ],
    )


def status() -> bool:
    """Report whether Firecracker runs; return True if it does."""
    if is_running():
        print(f"Firecracker MicroVM is running. {colored('[✓] RUNNING', 'light_green')}")
        return True
    print(f"Firecracker MicroVM is not running. {colored('[✗] STOPPED', 'light_red')}")
    return False


def check_kvm_support() -> None:
    """Raise RuntimeError unless a kvm kernel module is loaded."""
    print("[+] Checking for kvm support... ", end="", flush=True)
    try:
        run_command("sh", ["-c", "lsmod | grep kvm"], False)
    except CommandError as exc:
        raise RuntimeError(
            "KVM is not available. Please ensure KVM is enabled in your system."
        ) from exc
    print(colored("[✓] OK", "light_green"))


def up(options: VmOptions) -> None:
    """Start Firecracker, prepare the guest files and boot the microVM.

    Settings from ``fire.toml`` replace ``options`` when that file can be read.
    """
    check_kvm_support()

    try:
        options = options_from_config(read_config())
    except (OSError, ValueError):
        pass

    start()
    while True:
        time.sleep(1)
        if is_running():
            print("[+] Firecracker is running.")
            break

    prepare(options.to_distro())
    setup(options)