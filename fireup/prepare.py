"""Preparing a kernel, an ext4 root filesystem and an SSH key for each guest distribution."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from termcolor import colored

from fireup.command import (
    CommandError,
    get_config_dir,
    run_command,
    run_command_with_stdout_inherit,
)
from fireup.config import Distro
from fireup.downloader import (
    download_alpine_rootfs,
    download_files,
    download_kernel,
    download_nixos_rootfs,
)
from fireup.network import BRIDGE_IP
from fireup.rootfs import create_ext4_filesystem, extract_squashfs
from fireup.ssh import generate_and_copy_ssh_key, generate_and_copy_ssh_key_nixos

SSH_KEY_NAME = "id_rsa"
DEBIAN_MIRROR = "http://deb.debian.org/debian/"

_DEBIAN_ARCHES = {"x86_64": "amd64", "aarch64": "arm64"}


def _succeeds(command: str, args: Sequence[str], use_sudo: bool) -> bool:
    try:
        run_command(command, args, use_sudo)
    except CommandError:
        return False
    return True


def debian_arch(arch: str) -> str:
    """Map a kernel machine name to the Debian architecture name."""
    return _DEBIAN_ARCHES.get(arch, arch)


class RootfsPreparer(ABC):
    """Builds the files a guest distribution needs to boot."""

    name: str = ""

    def _announce(self, arch: str) -> None:
        print(f"[+] Preparing {self.name} rootfs for {colored(arch, 'light_green')}...")

    @abstractmethod
    def prepare(self, arch: str, app_dir: str) -> tuple[str, str, str]:
        """Return the paths of the kernel, the ext4 image and the SSH private key."""


class DebianPreparer(RootfsPreparer):
    """Debian stable built with debootstrap."""

    name = "Debian"

    def prepare(self, arch: str, app_dir: str) -> tuple[str, str, str]:
        self._announce(arch)
        kernel_file = download_kernel(arch)
        debootstrap_dir = f"{app_dir}/debootstrap"
        deb_arch = debian_arch(arch)

        if not Path(debootstrap_dir).exists():
            Path(debootstrap_dir).mkdir(parents=True, exist_ok=True)
            run_command_with_stdout_inherit(
                "debootstrap",
                [f"--arch={deb_arch}", "stable", debootstrap_dir, DEBIAN_MIRROR],
                True,
            )

        run_command("mkdir", ["-p", f"{debootstrap_dir}/root/.ssh"], True)
        generate_and_copy_ssh_key(SSH_KEY_NAME, debootstrap_dir)

        if not _succeeds("chroot", [debootstrap_dir, "which", "sshd"], True):
            run_command_with_stdout_inherit(
                "chroot", [debootstrap_dir, "apt-get", "update"], True
            )
            run_command_with_stdout_inherit(
                "chroot",
                [debootstrap_dir, "apt-get", "install", "-y", "openssh-server"],
                True,
            )
            run_command("chroot", [debootstrap_dir, "systemctl", "enable", "ssh"], True)

        ext4_file = f"{app_dir}/debian-{deb_arch}.ext4"
        if not Path(ext4_file).exists():
            create_ext4_filesystem(debootstrap_dir, ext4_file, 600)

        return kernel_file, ext4_file, f"{app_dir}/{SSH_KEY_NAME}"


class AlpinePreparer(RootfsPreparer):
    """Alpine built from the mini root filesystem."""

    name = "Alpine"

    def prepare(self, arch: str, app_dir: str) -> tuple[str, str, str]:
        self._announce(arch)
        kernel_file = download_kernel(arch)
        minirootfs = f"{app_dir}/minirootfs"
        download_alpine_rootfs(minirootfs, arch)

        run_command(
            "sh",
            ["-c", f"echo 'nameserver {BRIDGE_IP}' >> {minirootfs}/etc/resolv.conf"],
            True,
        )
        if not _succeeds("chroot", [minirootfs, "which", "sshd"], True):
            run_command_with_stdout_inherit("chroot", [minirootfs, "apk", "update"], True)
            run_command_with_stdout_inherit(
                "chroot",
                [
                    minirootfs,
                    "apk",
                    "add",
                    "alpine-base",
                    "util-linux",
                    "linux-virt",
                    "haveged",
                    "openssh",
                ],
                True,
            )

        run_command_with_stdout_inherit(
            "chroot", [minirootfs, "rc-update", "add", "haveged"], True
        )
        run_command(
            "chroot",
            [
                minirootfs,
                "sh",
                "-c",
                "for svc in devfs procfs sysfs; do "
                "ln -fs /etc/init.d/$svc /etc/runlevels/boot; done",
            ],
            True,
        )
        if not _succeeds(
            "chroot",
            [minirootfs, "ln", "-s", "agetty", "/etc/init.d/agetty.ttyS0"],
            True,
        ):
            print("[!] Failed to create symlink for agetty.ttyS0, please check manually.")
        run_command_with_stdout_inherit(
            "chroot", [minirootfs, "sh", "-c", "echo ttyS0 > /etc/securetty"], True
        )
        run_command(
            "chroot", [minirootfs, "rc-update", "add", "agetty.ttyS0", "default"], True
        )
        run_command("chroot", [minirootfs, "rc-update", "add", "sshd"], True)
        run_command("chroot", [minirootfs, "rc-update", "add", "networking", "boot"], True)
        run_command(
            "chroot", [minirootfs, "mkdir", "-p", "/root/.ssh", "/etc/network"], True
        )
        run_command(
            "chroot",
            [
                minirootfs,
                "sh",
                "-c",
                "echo 'auto eth0\niface eth0 inet dhcp' > /etc/network/interfaces",
            ],
            True,
        )

        generate_and_copy_ssh_key(SSH_KEY_NAME, minirootfs)

        ext4_file = f"{app_dir}/alpine-{arch}.ext4"
        if not Path(ext4_file).exists():
            create_ext4_filesystem(minirootfs, ext4_file, 500)

        return kernel_file, ext4_file, f"{app_dir}/{SSH_KEY_NAME}"


class UbuntuPreparer(RootfsPreparer):
    """Ubuntu from the Firecracker CI squashfs image."""

    name = "Ubuntu"

    def prepare(self, arch: str, app_dir: str) -> tuple[str, str, str]:
        self._announce(arch)
        kernel_file, ubuntu_file, ubuntu_version = download_files(arch)

        squashfs_root_dir = f"{app_dir}/squashfs_root"
        extract_squashfs(ubuntu_file, squashfs_root_dir)
        generate_and_copy_ssh_key(SSH_KEY_NAME, squashfs_root_dir)

        ext4_file = f"{app_dir}/ubuntu-{ubuntu_version}.ext4"
        if not Path(ext4_file).exists():
            create_ext4_filesystem(squashfs_root_dir, ext4_file, 400)
        else:
            print(
                f"[!] {colored(ext4_file, 'light_yellow')} already exists, "
                "skipping ext4 creation."
            )

        return kernel_file, ext4_file, f"{app_dir}/{SSH_KEY_NAME}"


class NixOSPreparer(RootfsPreparer):
    """NixOS from a prebuilt squashfs image."""

    name = "NixOS"

    def prepare(self, arch: str, app_dir: str) -> tuple[str, str, str]:
        self._announce(arch)
        kernel_file = download_kernel(arch)
        nixos_rootfs = f"{app_dir}/nixosrootfs"
        squashfs_file = f"{app_dir}/nixos-rootfs.squashfs"

        download_nixos_rootfs(arch)
        extract_squashfs(squashfs_file, nixos_rootfs)
        generate_and_copy_ssh_key_nixos(SSH_KEY_NAME, nixos_rootfs)

        ext4_file = f"{app_dir}/nixos-rootfs.ext4"
        if not Path(ext4_file).exists():
            create_ext4_filesystem(nixos_rootfs, ext4_file, 5120)

        print(f"[+] {self.name} rootfs prepared at: {colored(nixos_rootfs, 'light_green')}")
        return kernel_file, ext4_file, f"{app_dir}/{SSH_KEY_NAME}"


_PREPARERS: dict[Distro, type[RootfsPreparer]] = {
    Distro.DEBIAN: DebianPreparer,
    Distro.ALPINE: AlpinePreparer,
    Distro.UBUNTU: UbuntuPreparer,
    Distro.NIXOS: NixOSPreparer,
}


def preparer_for(distro: Distro) -> RootfsPreparer:
    """Return the preparer for a distribution."""
    return _PREPARERS[distro]()


def detect_arch() -> str:
    """Return the host machine architecture as reported by ``uname -m``."""
    return run_command("uname", ["-m"], False).stdout.strip()


def prepare(distro: Distro) -> tuple[str, str, str]:
    """Prepare everything needed to boot ``distro``; return kernel, rootfs and key paths."""
    arch = detect_arch()
    print(f"[+] Detected architecture: {colored(arch, 'light_green')}")

    app_dir = get_config_dir()
    kernel_file, ext4_file, ssh_key_file = preparer_for(distro).prepare(arch, app_dir)

    print(f"[✓] Kernel: {colored(kernel_file, 'light_green')}")
    print(f"[✓] Rootfs: {colored(ext4_file, 'light_green')}")
    print(f"[✓] SSH Key: {colored(ssh_key_file, 'light_green')}")
    return kernel_file, ext4_file, ssh_key_file