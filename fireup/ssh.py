"""Generating the guest SSH key and installing it into a root filesystem."""

from __future__ import annotations

from pathlib import Path

from fireup.command import get_config_dir, run_command, run_command_with_stdout_inherit

# Matches the ed25519 authorized key shipped in the NixOS image configuration.
_SHIPPED_KEY_PATTERN = r"ssh-ed25519 [A-Za-z0-9+/=]+( [^\"';|]*)?"


def _install_authorized_key(pub_key_path: str, root_dir: str) -> None:
    auth_keys_path = f"{root_dir}/root/.ssh/authorized_keys"
    run_command("cp", [pub_key_path, auth_keys_path], True)


def _ensure_key(key_name: str) -> str:
    """Return the private key path in the app directory, generating it if missing."""
    app_dir = get_config_dir()
    key_path = f"{app_dir}/{key_name}"
    if Path(key_path).exists():
        print(f"[!] Warning: {key_name} already exists, skipping key generation.")
    else:
        run_command_with_stdout_inherit("ssh-keygen", ["-f", key_path, "-N", ""], False)
    return key_path


def generate_and_copy_ssh_key(key_name: str, squashfs_root_dir: str) -> None:
    """Make sure the key exists and authorise it for root in the guest tree."""
    key_path = _ensure_key(key_name)
    _install_authorized_key(f"{key_path}.pub", squashfs_root_dir)


def _replace_key_expression(public_key: str) -> str:
    return f"s|{_SHIPPED_KEY_PATTERN}|{public_key}|"


def generate_and_copy_ssh_key_nixos(key_name: str, squashfs_root_dir: str) -> None:
    """Make sure the key exists and put it into the guest's configuration.nix."""
    key_path = _ensure_key(key_name)
    try:
        public_key = Path(f"{key_path}.pub").read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise OSError(f"Failed to read public key: {exc}") from exc
    nixos_configuration = f"{squashfs_root_dir}/etc/nixos/configuration.nix"
    run_command(
        "sed",
        ["-E", "-i", _replace_key_expression(public_key), nixos_configuration],
        True,
    )