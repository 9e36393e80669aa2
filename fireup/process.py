"""Starting and stopping the Firecracker process."""

from __future__ import annotations

import threading

from fireup.command import CommandError, run_command, run_command_in_background

FIRECRACKER_SOCKET = "/tmp/firecracker.sock"


def start() -> threading.Thread:
    """Stop any running Firecracker, then start a fresh one in the background."""
    stop()
    print("[+] Starting Firecracker...")
    return run_command_in_background(
        "firecracker", ["--api-sock", FIRECRACKER_SOCKET], True
    )


def stop() -> None:
    """Kill Firecracker if it runs and remove its API socket."""
    if not is_running():
        print("[!] Firecracker is not running.")
        run_command("rm", ["-rf", FIRECRACKER_SOCKET], True)
        return
    run_command("killall", ["-s", "KILL", "firecracker"], True)
    run_command("rm", ["-rf", FIRECRACKER_SOCKET], True)
    print("[+] Firecracker has been stopped.")


def is_running() -> bool:
    """Return True if a firecracker process exists."""
    try:
        run_command("pgrep", ["firecracker"], False)
    except CommandError:
        return False
    return True