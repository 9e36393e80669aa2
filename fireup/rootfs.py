"""Building ext4 root filesystem images."""

from __future__ import annotations

from pathlib import Path

from fireup.command import run_command


def extract_squashfs(squashfs_file: str, output_dir: str) -> None:
    """Unpack a squashfs image into ``output_dir`` unless it already exists."""
    if Path(output_dir).exists():
        print(f"[!] Warning: {output_dir} already exists, skipping extraction.")
        return
    print("Extracting rootfs...")
    run_command("unsquashfs", ["-d", output_dir, squashfs_file], False)


def create_ext4_filesystem(squashfs_dir: str, output_file: str, size: int) -> None:
    """Create an ext4 image of ``size`` MiB populated from ``squashfs_dir``."""
    run_command("chown", ["-R", "root:root", squashfs_dir], True)
    run_command("truncate", ["-s", f"{size}M", output_file], False)
    run_command("mkfs.ext4", ["-d", squashfs_dir, "-F", output_file], True)