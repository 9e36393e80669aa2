"""The ``fire.toml`` project configuration."""

from __future__ import annotations

import os
import sys
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import tomli_w
from termcolor import colored

CONFIG_FILE = "fire.toml"
_U16_MAX = 0xFFFF


class Distro(Enum):
    """Guest distributions that can be prepared."""

    DEBIAN = "Debian"
    ALPINE = "Alpine"
    UBUNTU = "Ubuntu"
    NIXOS = "NixOS"


@dataclass
class Vm:
    """Virtual machine settings; unset fields fall back to defaults."""

    vcpu: int | None = None
    memory: int | None = None
    vmlinux: str | None = None
    rootfs: str | None = None
    boot_args: str | None = None


def _u16(value: Any, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"vm.{name} must be an integer")
    if not 0 <= value <= _U16_MAX:
        raise ValueError(f"vm.{name} must be between 0 and {_U16_MAX}")
    return value


def _string(value: Any, name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"vm.{name} must be a string")
    return value


@dataclass
class FireConfig:
    """A parsed ``fire.toml``."""

    distro: Distro
    vm: Vm = field(default_factory=Vm)

    def to_toml(self) -> str:
        """Serialise to TOML, leaving out unset fields."""
        vm = {
            key: value
            for key, value in (
                ("vcpu", self.vm.vcpu),
                ("memory", self.vm.memory),
                ("vmlinux", self.vm.vmlinux),
                ("rootfs", self.vm.rootfs),
                ("boot_args", self.vm.boot_args),
            )
            if value is not None
        }
        return tomli_w.dumps({"distro": self.distro.value, "vm": vm})

    @classmethod
    def from_toml(cls, text: str) -> FireConfig:
        """Parse TOML text; raise ValueError if it is not a valid configuration."""
        data = tomllib.loads(text)
        if "distro" not in data:
            raise ValueError("missing field `distro`")
        if "vm" not in data:
            raise ValueError("missing field `vm`")
        distro_value = data["distro"]
        try:
            distro = Distro(distro_value)
        except ValueError as exc:
            raise ValueError(f"unknown distro: {distro_value!r}") from exc
        vm_data = data["vm"]
        if not isinstance(vm_data, dict):
            raise ValueError("`vm` must be a table")
        vm = Vm(
            vcpu=_u16(vm_data.get("vcpu"), "vcpu"),
            memory=_u16(vm_data.get("memory"), "memory"),
            vmlinux=_string(vm_data.get("vmlinux"), "vmlinux"),
            rootfs=_string(vm_data.get("rootfs"), "rootfs"),
            boot_args=_string(vm_data.get("boot_args"), "boot_args"),
        )
        return cls(distro=distro, vm=vm)


def default_config() -> FireConfig:
    """Ubuntu with one vCPU per host CPU and 512 MiB of memory."""
    return FireConfig(
        distro=Distro.UBUNTU,
        vm=Vm(vcpu=os.cpu_count() or 1, memory=512),
    )


def init_config(path: str | os.PathLike[str] = CONFIG_FILE) -> Path:
    """Write a default configuration, asking before overwriting; exit 1 on refusal."""
    config_path = Path(path)
    if config_path.exists():
        print(
            f"Configuration file {colored(repr(config_path.name), 'cyan')} "
            "already exists, would you like to overwrite it? (y/n)"
        )
        answer = sys.stdin.readline()
        if answer.strip().lower() != "y":
            sys.exit(1)
    config_path.write_text(default_config().to_toml(), encoding="utf-8")
    return config_path


def read_config(path: str | os.PathLike[str] = CONFIG_FILE) -> FireConfig:
    """Read and parse the configuration file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError("Configuration file not found")
    return FireConfig.from_toml(config_path.read_text(encoding="utf-8"))