"""Host networking for the microVM: tap device, bridge, NAT and DNSMasq."""

from __future__ import annotations

import json
import sys
from collections.abc import Sequence
from pathlib import Path

from fireup.command import CommandError, run_command

TAP_DEV = "tap0"
BRIDGE_DEV = "br0"
API_SOCKET = "/tmp/firecracker.sock"
BRIDGE_IP = "172.16.0.1"
FC_MAC = "06:00:AC:10:00:02"
MASK_SHORT = "/30"
GUEST_IP = "vm0.firecracker.local"

DNSMASQ_CONFIG_PATH = "/etc/dnsmasq.d/firecracker.conf"


def _succeeds(command: str, args: Sequence[str], use_sudo: bool) -> bool:
    try:
        run_command(command, args, use_sudo)
    except CommandError:
        return False
    return True


def dnsmasq_config() -> str:
    """Return the DNSMasq configuration serving DHCP and DNS on the bridge."""
    return (
        "\n"
        f"interface={BRIDGE_DEV}\n"
        "bind-interfaces\n"
        "domain=firecracker.local\n"
        f"dhcp-option=option:router,{BRIDGE_IP}\n"
        f"dhcp-option=option:dns-server,{BRIDGE_IP}\n"
        "dhcp-range=172.16.0.2,172.16.0.150,12h\n"
        f"dhcp-host={FC_MAC},vm0\n"
        "server=8.8.8.8\n"
        "server=8.8.4.4\n"
        "server=1.1.1.1\n"
    )


def dnsmasq_is_installed() -> bool:
    """Return True if ``dnsmasq`` is on the PATH."""
    return _succeeds("which", ["dnsmasq"], False)


def restart_dnsmasq() -> None:
    """Enable and restart the DNSMasq service."""
    print("[+] Starting DNSMasq...")
    run_command("systemctl", ["enable", "dnsmasq"], True)
    run_command("systemctl", ["restart", "dnsmasq"], True)
    print("[✓] DNSMasq started successfully.")


def setup_dnsmasq() -> None:
    """Install the DNSMasq configuration and restart it; exit 1 if DNSMasq is missing."""
    print("[+] Checking if DNSMasq is installed...")
    if not dnsmasq_is_installed():
        print("[✗] DNSMasq is not installed. Please install it first.")
        sys.exit(1)

    if Path(DNSMASQ_CONFIG_PATH).exists():
        print("[✓] DNSMasq configuration already exists. Skipping setup.")
        return

    print("[+] Setting up DNSMasq configuration...")
    run_command("mkdir", ["-p", "/etc/dnsmasq.d"], True)
    run_command(
        "sh",
        ["-c", f"echo '{dnsmasq_config()}' > {DNSMASQ_CONFIG_PATH}"],
        True,
    )
    restart_dnsmasq()


def check_tap_exists() -> bool:
    """Return True if the tap device exists."""
    return _succeeds("ip", ["link", "show", TAP_DEV], False)


def check_bridge_exists() -> bool:
    """Return True if the bridge device exists."""
    return _succeeds("ip", ["link", "show", BRIDGE_DEV], False)


def default_route_interface(route_json: str | bytes) -> str:
    """Return the device of the first route in ``ip -j route list default`` output."""
    try:
        routes = json.loads(route_json)
    except ValueError as exc:
        raise ValueError("Failed to parse route JSON") from exc
    device = None
    if isinstance(routes, list) and routes and isinstance(routes[0], dict):
        device = routes[0].get("dev")
    if not isinstance(device, str):
        raise ValueError("Failed to get host interface")
    return device


def _nat_rule(action: str, host_iface: str) -> list[str]:
    return ["-t", "nat", action, "POSTROUTING", "-o", host_iface, "-j", "MASQUERADE"]


def setup_network() -> None:
    """Create the tap device and bridge, enable forwarding and NAT, and set up DNSMasq."""
    if check_tap_exists():
        run_command("ip", ["addr", "flush", "dev", TAP_DEV], True)

    if check_tap_exists() and check_bridge_exists():
        print("[✓] Network already configured. Skipping setup.")
        return

    if not check_tap_exists():
        print(f"[+] Configuring {TAP_DEV}...")
        run_command("ip", ["tuntap", "add", "dev", TAP_DEV, "mode", "tap"], True)
        run_command("ip", ["link", "set", "dev", TAP_DEV, "up"], True)

    if not check_bridge_exists():
        print(f"[+] Configuring {BRIDGE_DEV}...")
        run_command("ip", ["link", "add", "name", BRIDGE_DEV, "type", "bridge"], True)
        run_command("ip", ["link", "set", BRIDGE_DEV, "up"], True)
        run_command("ip", ["link", "set", TAP_DEV, "master", BRIDGE_DEV], True)
        run_command(
            "ip", ["addr", "add", f"{BRIDGE_IP}{MASK_SHORT}", "dev", BRIDGE_DEV], True
        )

    ip_forward = run_command("cat", ["/proc/sys/net/ipv4/ip_forward"], False).stdout
    if ip_forward.strip() != "1":
        print("[+] Enabling IP forwarding...")
        run_command("sysctl", ["-w", "net.ipv4.ip_forward=1"], True)

    routes = run_command("ip", ["-j", "route", "list", "default"], False).stdout
    host_iface = default_route_interface(routes)

    print(f"[+] Setting up NAT on {host_iface}...")
    if not _succeeds("iptables", _nat_rule("-C", host_iface), True):
        run_command("iptables", _nat_rule("-A", host_iface), True)

    run_command("iptables", ["-P", "FORWARD", "ACCEPT"], True)

    setup_dnsmasq()


def configure_guest_network(key_name: str) -> None:
    """Point the guest's resolver at the bridge over SSH."""
    print("[+] Configuring network in guest...")
    run_command(
        "ssh",
        [
            "-i",
            key_name,
            "-o",
            "StrictHostKeyChecking=no",
            f"root@{GUEST_IP}",
            f"echo 'nameserver {BRIDGE_IP}' > /etc/resolv.conf",
        ],
        False,
    )