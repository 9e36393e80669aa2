"""Booting a prepared microVM: locating its files, networking and configuration."""

from __future__ import annotations

import glob
from pathlib import Path

from termcolor import colored

from fireup.command import get_config_dir
from fireup.config import Distro
from fireup.firecracker import configure
from fireup.network import configure_guest_network, setup_network
from fireup.options import VmOptions
from fireup.prepare import detect_arch

_ROOTFS_PREFIXES = {
    Distro.DEBIAN: "debian",
    Distro.ALPINE: "alpine",
    Distro.NIXOS: "nixos",
    Distro.UBUNTU: "ubuntu",
}


def rootfs_pattern(app_dir: str, distro: Distro) -> str:
    """Return the glob pattern of the ext4 image for ``distro``."""
    return f"{app_dir}/{_ROOTFS_PREFIXES[distro]}*.ext4"


def find_last(pattern: str, what: str) -> str:
    """Return the absolute path of the last file matching ``pattern`` in sorted order."""
    matches = sorted(glob.glob(pattern))
    if not matches:
        raise FileNotFoundError(f"No {what} file found")
    path = Path(matches[-1])
    try:
        return str(path.resolve(strict=True))
    except OSError as exc:
        raise OSError(f"Failed to resolve absolute path for {what}: {path}") from exc


def setup(options: VmOptions) -> None:
    """Set up host networking, configure the microVM and boot it."""
    distro = options.to_distro()
    app_dir = get_config_dir()

    logfile = f"{app_dir}/firecracker.log"
    try:
        Path(logfile).write_text("", encoding="utf-8")
    except OSError as exc:
        raise OSError(f"Failed to create log file: {logfile}") from exc

    kernel = find_last(f"{app_dir}/vmlinux*", "kernel")
    rootfs = find_last(rootfs_pattern(app_dir, distro), "rootfs")
    key_name = find_last(f"{app_dir}/id_rsa", "SSH key")
    arch = detect_arch()

    setup_network()
    configure(logfile, kernel, rootfs, arch, options, distro)

    if distro is not Distro.NIXOS:
        configure_guest_network(key_name)

    print("[✓] MicroVM booted and network is configured 🎉")
    print("SSH into the VM using the following command:")
    print(colored("fireup ssh", "light_green"))