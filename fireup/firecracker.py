"""Configuring and starting a microVM through the Firecracker API socket."""

from __future__ import annotations

import json
import time
from typing import Any

from fireup.command import run_command
from fireup.config import Distro
from fireup.network import API_SOCKET, FC_MAC, TAP_DEV
from fireup.options import VmOptions

DEFAULT_BOOT_ARGS = "console=ttyS0 reboot=k panic=1 pci=off ip=dhcp"
NIXOS_BOOT_ARGS = (
    "init=/nix/store/w1yqjd8sswh8zj9sz2v76dpw3llzkg5k-nixos-system-nixos-firecracker-"
    "25.05.802216.55d1f923c480/init root=/dev/vda ro console=ttyS0 reboot=k panic=1 ip=dhcp"
)
GUEST_IFACE = "eth0"


def _encode(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), sort_keys=True)


def boot_args_for(arch: str, is_nixos: bool, options: VmOptions) -> str:
    """Return the kernel command line; an explicit override always wins."""
    if options.bootargs is not None:
        return options.bootargs
    if is_nixos:
        return NIXOS_BOOT_ARGS
    if arch == "aarch64":
        return f"keep_bootcon {DEFAULT_BOOT_ARGS}"
    return DEFAULT_BOOT_ARGS


def boot_source_payload(
    kernel: str, arch: str, is_nixos: bool, options: VmOptions
) -> dict[str, str]:
    """Return the boot-source request body, preferring a user-given kernel image."""
    return {
        "kernel_image_path": options.vmlinux if options.vmlinux is not None else kernel,
        "boot_args": boot_args_for(arch, is_nixos, options),
    }


def machine_config_payload(vcpu: int, memory: int) -> dict[str, Any]:
    """Return the machine-config request body."""
    return {"vcpu_count": vcpu, "mem_size_mib": memory, "smt": False}


def api_put(path: str, payload: dict[str, Any]) -> None:
    """Send ``payload`` as a PUT request to ``path`` on the Firecracker API socket."""
    run_command(
        "curl",
        [
            "-s",
            "-X",
            "PUT",
            "--unix-socket",
            API_SOCKET,
            "--data",
            _encode(payload),
            f"http://localhost{path}",
        ],
        True,
    )


def _configure_logger(logfile: str) -> None:
    print("[+] Configuring logger...")
    api_put(
        "/logger",
        {
            "log_path": logfile,
            "level": "Debug",
            "show_level": True,
            "show_log_origin": True,
        },
    )


def _setup_boot_source(kernel: str, arch: str, is_nixos: bool, options: VmOptions) -> None:
    print("[+] Setting boot source...")
    payload = boot_source_payload(kernel, arch, is_nixos, options)
    print(_encode(payload))
    api_put("/boot-source", payload)


def _setup_rootfs(rootfs: str) -> None:
    print("[+] Setting rootfs...")
    api_put(
        "/drives/rootfs",
        {
            "drive_id": "rootfs",
            "path_on_host": rootfs,
            "is_root_device": True,
            "is_read_only": False,
        },
    )


def _setup_network_interface() -> None:
    print("[+] Setting network interface...")
    payload = {"iface_id": GUEST_IFACE, "guest_mac": FC_MAC, "host_dev_name": TAP_DEV}
    print(_encode(payload))
    api_put(f"/network-interfaces/{GUEST_IFACE}", payload)


def _setup_vcpu_and_memory(vcpu: int, memory: int) -> None:
    print("[+] Setting vCPU and memory...")
    payload = machine_config_payload(vcpu, memory)
    print(_encode(payload))
    api_put("/machine-config", payload)


def _start_microvm() -> None:
    print("[+] Starting microVM...")
    api_put("/actions", {"action_type": "InstanceStart"})


def configure(
    logfile: str,
    kernel: str,
    rootfs: str,
    arch: str,
    options: VmOptions,
    distro: Distro,
) -> None:
    """Configure logger, boot source, drive, network and machine, then boot the VM."""
    _configure_logger(logfile)
    _setup_boot_source(kernel, arch, distro is Distro.NIXOS, options)
    _setup_rootfs(rootfs)
    _setup_network_interface()
    _setup_vcpu_and_memory(options.vcpu, options.memory)

    time.sleep(0.015)
    _start_microvm()
    time.sleep(2)