"""Command-line entry point for ``fireup``."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Callable, Sequence

from termcolor import colored

from fireup.command import CommandError
from fireup.commands import down, init, logs, reset, ssh, status, up
from fireup.options import VmOptions

VERSION = "0.4.0"
DEFAULT_MEMORY = 512
NIXOS_MEMORY = 2048
_U16_MAX = 0xFFFF

_BANNER = r"""
     _______           __  __
    / ____(_)_______  / / / /___
   / /_  / / ___/ _ \/ / / / __ \
  / __/ / / /  /  __/ /_/ / /_/ /
 /_/   /_/_/   \___/\____/ .___/
                        /_/
"""

_DISTROS = (
    ("debian", "Debian"),
    ("alpine", "Alpine"),
    ("nixos", "NixOS"),
    ("ubuntu", "Ubuntu"),
)


def _u16(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {text!r}") from exc
    if not 0 <= value <= _U16_MAX:
        raise argparse.ArgumentTypeError(f"must be between 0 and {_U16_MAX}: {text}")
    return value


def _add_vm_arguments(parser: argparse.ArgumentParser, suppress: bool) -> None:
    """Add the microVM options; with ``suppress`` unset ones leave the parent's values."""

    def default(value: object) -> object:
        return argparse.SUPPRESS if suppress else value

    for name, label in _DISTROS:
        parser.add_argument(
            f"--{name}",
            action="store_true",
            default=default(name == "ubuntu"),
            help=f"Prepare {label} MicroVM",
        )
    parser.add_argument(
        "--vcpu", metavar="N", type=_u16, default=default(None), help="Number of vCPUs"
    )
    parser.add_argument(
        "--memory", metavar="M", type=_u16, default=default(None), help="Memory size in MiB"
    )
    parser.add_argument(
        "--vmlinux", metavar="PATH", default=default(None), help="Path to the kernel image"
    )
    parser.add_argument(
        "--rootfs",
        metavar="PATH",
        default=default(None),
        help="Path to the root filesystem image",
    )
    parser.add_argument(
        "--boot-args",
        dest="bootargs",
        metavar="ARGS",
        default=default(None),
        help="Override boot arguments",
    )


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for ``fireup`` and its subcommands."""
    parser = argparse.ArgumentParser(
        prog="fireup",
        description=colored(_BANNER, "yellow"),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    _add_vm_arguments(parser, suppress=False)

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser(
        "init",
        help="Create a new Firecracker MicroVM configuration `fire.toml` "
        "in the current directory",
    )
    up_parser = subparsers.add_parser("up", help="Start Firecracker MicroVM")
    _add_vm_arguments(up_parser, suppress=True)
    subparsers.add_parser("down", help="Stop Firecracker MicroVM")
    subparsers.add_parser("status", help="Check the status of Firecracker MicroVM")
    logs_parser = subparsers.add_parser(
        "logs", help="View the logs of the Firecracker MicroVM"
    )
    logs_parser.add_argument(
        "-f", "--follow", action="store_true", default=False, help="Follow the logs"
    )
    subparsers.add_parser("ssh", help="SSH into the Firecracker MicroVM")
    subparsers.add_parser("reset", help="Reset the Firecracker MicroVM")
    return parser


def options_from_args(args: argparse.Namespace) -> VmOptions:
    """Build microVM options from parsed arguments, filling in defaults.

    Without a subcommand a NixOS guest gets more memory by default.
    """
    nixos = bool(args.nixos)
    if args.memory is not None:
        memory = args.memory
    elif getattr(args, "command", None) != "up" and nixos:
        memory = NIXOS_MEMORY
    else:
        memory = DEFAULT_MEMORY
    return VmOptions(
        debian=bool(args.debian),
        alpine=bool(args.alpine),
        ubuntu=bool(args.ubuntu),
        nixos=nixos,
        vcpu=args.vcpu if args.vcpu is not None else (os.cpu_count() or 1),
        memory=memory,
        vmlinux=args.vmlinux,
        rootfs=args.rootfs,
        bootargs=args.bootargs,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Run ``fireup``; return the process exit status."""
    args = build_parser().parse_args(argv)

    actions: dict[str | None, Callable[[], object]] = {
        "init": init,
        "down": down,
        "status": status,
        "logs": lambda: logs(args.follow),
        "ssh": ssh,
        "reset": reset,
    }
    action = actions.get(args.command, lambda: up(options_from_args(args)))

    try:
        action()
    except (CommandError, OSError, ValueError, RuntimeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())