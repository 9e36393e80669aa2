"""Options describing which microVM to start and how."""

from __future__ import annotations

import os
from dataclasses import dataclass

from fireup.config import Distro, FireConfig


@dataclass
class VmOptions:
    """MicroVM options gathered from the command line or ``fire.toml``."""

    debian: bool | None = None
    alpine: bool | None = None
    ubuntu: bool | None = None
    nixos: bool | None = None
    vcpu: int = 0
    memory: int = 0
    vmlinux: str | None = None
    rootfs: str | None = None
    bootargs: str | None = None

    def to_distro(self) -> Distro:
        """Pick the distribution; Debian, Alpine and NixOS win over Ubuntu."""
        if self.debian:
            return Distro.DEBIAN
        if self.alpine:
            return Distro.ALPINE
        if self.nixos:
            return Distro.NIXOS
        if self.ubuntu is None or self.ubuntu:
            return Distro.UBUNTU
        raise ValueError("No valid distribution option provided.")


def options_from_config(config: FireConfig) -> VmOptions:
    """Build options from a parsed configuration, filling in defaults."""
    vm = config.vm
    return VmOptions(
        debian=config.distro is Distro.DEBIAN,
        alpine=config.distro is Distro.ALPINE,
        ubuntu=config.distro is Distro.UBUNTU,
        nixos=config.distro is Distro.NIXOS,
        vcpu=vm.vcpu if vm.vcpu is not None else (os.cpu_count() or 1),
        memory=vm.memory if vm.memory is not None else 512,
        vmlinux=vm.vmlinux,
        rootfs=vm.rootfs,
        bootargs=vm.boot_args,
    )