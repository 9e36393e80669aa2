"""Running external programs, optionally through sudo, and locating the app directory."""

from __future__ import annotations

import os
import subprocess
import threading
from collections.abc import Sequence
from pathlib import Path


class CommandError(RuntimeError):
    """An external command could not be started or exited unsuccessfully."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


def has_sudo() -> bool:
    """Return True if a working ``sudo`` is available."""
    try:
        result = subprocess.run(
            ["sudo", "-h"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError:
        return False
    return result.returncode == 0


def is_root() -> bool:
    """Return True if the current user is root."""
    return os.getuid() == 0


def _command_line(command: str, args: Sequence[str], use_sudo: bool) -> list[str]:
    args = list(args)
    if not use_sudo or is_root():
        return [command, *args]
    if not has_sudo():
        raise CommandError(
            f"sudo is required for command '{command}', but not available"
        )
    return ["sudo", command, *args]


def _exit_code(returncode: int) -> int:
    return returncode if returncode >= 0 else -1


def run_command(
    command: str, args: Sequence[str] = (), use_sudo: bool = False
) -> subprocess.CompletedProcess[str]:
    """Run a command, capturing stdout and stderr; raise CommandError on failure."""
    args = list(args)
    argv = _command_line(command, args, use_sudo)
    try:
        result = subprocess.run(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        raise CommandError(f"Failed to execute {command}") from exc
    if result.returncode != 0:
        code = _exit_code(result.returncode)
        raise CommandError(
            f"Command {command} failed: {result.stderr} {result.stdout} "
            f"{' '.join(args)} {code}",
            returncode=code,
        )
    return result


def run_command_with_stdout_inherit(
    command: str, args: Sequence[str] = (), use_sudo: bool = False
) -> None:
    """Run a command attached to the terminal; raise CommandError on failure."""
    argv = _command_line(command, args, use_sudo)
    try:
        result = subprocess.run(argv)
    except OSError as exc:
        raise CommandError(f"Failed to execute {command}") from exc
    if result.returncode != 0:
        code = _exit_code(result.returncode)
        raise CommandError(
            f"Command {command} failed with status: exit status: {code}",
            returncode=code,
        )


def run_command_in_background(
    command: str, args: Sequence[str] = (), use_sudo: bool = False
) -> threading.Thread:
    """Start a command detached from the terminal and wait for it on a thread."""
    argv = _command_line(command, args, use_sudo)

    def _run() -> None:
        try:
            subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError:
            pass

    thread = threading.Thread(target=_run, name=f"bg-{command}", daemon=True)
    thread.start()
    return thread


def run_interactive(command: str, args: Sequence[str] = ()) -> subprocess.CompletedProcess:
    """Run a command with the terminal's stdin, stdout and stderr."""
    args = list(args)
    try:
        result = subprocess.run([command, *args])
    except OSError as exc:
        raise CommandError(f"Failed to execute {command}") from exc
    if result.returncode != 0:
        code = _exit_code(result.returncode)
        raise CommandError(
            f"Command {command} failed: {' '.join(args)} {code}",
            returncode=code,
        )
    return result


def get_config_dir() -> str:
    """Return the application directory ``~/.fireup``, creating it if needed."""
    try:
        home = Path.home()
    except RuntimeError as exc:
        raise OSError("Failed to get home directory") from exc
    app_dir = home / ".fireup"
    try:
        app_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OSError(f"Failed to create app directory: {app_dir}") from exc
    return str(app_dir)