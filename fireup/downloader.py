"""Locating and downloading kernels and root filesystems for the guest."""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath

from termcolor import colored

from fireup.command import get_config_dir, run_command, run_command_with_stdout_inherit

LATEST_RELEASE_URL = "https://github.com/firecracker-microvm/firecracker/releases/latest"
BUCKET_LIST_URL = "http://spec.ccfc.min.s3.amazonaws.com/"
BUCKET_DOWNLOAD_URL = "https://s3.amazonaws.com/spec.ccfc.min/"
NIXOS_ROOTFS_URL = "https://public.rocksky.app/nixos-rootfs.squashfs"
ALPINE_VERSION = "3.22"

_KEY_RE = re.compile(
    r"<Key>(firecracker-ci/[^<]+/[^<]+/"
    r"(?:vmlinux-\d+\.\d+\.\d{1,3}|ubuntu-\d+\.\d+\.squashfs))</Key>"
)
_SHORT_VERSION_RE = re.compile(r"^\d+\.\d+$")
_U32_RE = re.compile(r"\+?[0-9]+")
_U32_MAX = 0xFFFFFFFF


def parse_ci_version(url: str) -> str:
    """Turn a release URL ending in ``vX.Y.Z`` into the CI series ``vX.Y``."""
    version = url.split("/")[-1].strip()
    head, dot, _ = version.rpartition(".")
    return head if dot else version


def get_ci_version() -> str:
    """Ask the release page which Firecracker CI series is the latest."""
    result = run_command(
        "curl",
        ["-fsSLI", "-o", "/dev/null", "-w", "%{url_effective}", LATEST_RELEASE_URL],
        False,
    )
    return parse_ci_version(result.stdout)


def _parse_u32(text: str) -> int:
    if _U32_RE.fullmatch(text):
        value = int(text)
        if value <= _U32_MAX:
            return value
    return 0


def version_key(key: str) -> list[int]:
    """Sort key for a bucket key; only ``*.squashfs`` names carry a version."""
    name = PurePosixPath(key).name
    tail = name.split("-")[-1]
    tail = tail[: -len(".squashfs")] if tail.endswith(".squashfs") else ""
    return [_parse_u32(part) for part in tail.split(".")]


def select_latest_key(xml: str, prefix: str) -> str:
    """Pick the newest kernel or Ubuntu image key from a bucket listing."""
    keys = _KEY_RE.findall(xml)
    if not keys:
        raise ValueError(f"No matching keys found for prefix: {prefix}")
    return sorted(keys, key=version_key)[-1]


def get_latest_key(url: str, prefix: str) -> str:
    """List the bucket at ``url`` under ``prefix`` and return the newest key."""
    result = run_command("curl", ["-s", f"{url}?prefix={prefix}&list-type=2"], False)
    return select_latest_key(result.stdout, prefix)


def ubuntu_version_from_key(key: str) -> str:
    """Extract ``X.Y`` from a key ending in ``ubuntu-X.Y.squashfs``."""
    name = PurePosixPath(key).name
    if not name or name in (".", ".."):
        raise ValueError("Failed to get ubuntu filename")
    if _SHORT_VERSION_RE.search(name):
        return name
    if not (name.startswith("ubuntu-") and name.endswith(".squashfs")):
        raise ValueError(f"Unexpected ubuntu image name: {name}")
    return name[len("ubuntu-") : -len(".squashfs")]


def download_file(url: str, output: str) -> None:
    """Download ``url`` to ``output`` with wget unless the file already exists."""
    if Path(output).exists():
        print(f"File already exists: {colored(output, 'light_green')}, skipping download.")
        return
    print(f"Downloading: {colored(output, 'light_green')}")
    run_command_with_stdout_inherit("wget", ["-O", output, url], False)


def download_kernel(arch: str) -> str:
    """Download the newest CI kernel for ``arch``; return its local path."""
    app_dir = get_config_dir()
    ci_version = get_ci_version()
    prefix = f"firecracker-ci/{ci_version}/{arch}/vmlinux-"
    key = get_latest_key(BUCKET_LIST_URL, prefix)
    kernel_file = f"{app_dir}/{key.split('/')[-1]}"
    download_file(f"{BUCKET_DOWNLOAD_URL}{key}", kernel_file)
    return kernel_file


def download_files(arch: str) -> tuple[str, str, str]:
    """Download kernel and Ubuntu image; return (kernel, image, ubuntu version)."""
    app_dir = get_config_dir()
    kernel_file = download_kernel(arch)
    ci_version = get_ci_version()
    prefix = f"firecracker-ci/{ci_version}/{arch}/ubuntu-"
    key = get_latest_key(BUCKET_LIST_URL, prefix)
    ubuntu_version = ubuntu_version_from_key(key)
    ubuntu_file = f"{app_dir}/ubuntu-{ubuntu_version}.squashfs.upstream"
    download_file(f"{BUCKET_DOWNLOAD_URL}{key}", ubuntu_file)
    return kernel_file, ubuntu_file, ubuntu_version


def download_alpine_rootfs(minirootfs: str, arch: str) -> None:
    """Download the Alpine mini root filesystem and unpack it into ``minirootfs``."""
    app_dir = get_config_dir()
    output = f"{app_dir}/alpine-{arch}.tar.gz"
    url = (
        f"https://mirrors.aliyun.com/alpine/v{ALPINE_VERSION}/releases/x86_64/"
        f"alpine-minirootfs-{ALPINE_VERSION}.0-{arch}.tar.gz"
    )
    download_file(url, output)
    run_command("mkdir", ["-p", minirootfs], True)
    run_command("tar", ["-xzf", output, "-C", minirootfs], True)


def download_nixos_rootfs(arch: str) -> None:
    """Download the NixOS squashfs root filesystem."""
    app_dir = get_config_dir()
    download_file(NIXOS_ROOTFS_URL, f"{app_dir}/nixos-rootfs.squashfs")