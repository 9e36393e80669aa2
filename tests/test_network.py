import os
import subprocess

import pytest

from fireup.network import (
    BRIDGE_DEV,
    BRIDGE_IP,
    FC_MAC,
    GUEST_IP,
    TAP_DEV,
    check_bridge_exists,
    check_tap_exists,
    configure_guest_network,
    default_route_interface,
    dnsmasq_config,
    dnsmasq_is_installed,
    restart_dnsmasq,
    setup_dnsmasq,
    setup_network,
)


class FakeSystem:
    def __init__(self):
        self.calls = []
        self.handler = lambda argv: (0, "")

    def __call__(self, argv, **kwargs):
        argv = list(argv)
        self.calls.append(argv)
        code, out = self.handler(argv)
        text = kwargs.get("text", False)
        return subprocess.CompletedProcess(
            argv,
            code,
            stdout=out if text else None,
            stderr="" if text else None,
        )


@pytest.fixture
def system(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setattr(os, "getuid", lambda: 0)
    fake = FakeSystem()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


def test_dnsmasq_config_lines():
    lines = dnsmasq_config().splitlines()
    assert f"interface={BRIDGE_DEV}" in lines
    assert f"dhcp-option=option:router,{BRIDGE_IP}" in lines
    assert f"dhcp-option=option:dns-server,{BRIDGE_IP}" in lines
    assert f"dhcp-host={FC_MAC},vm0" in lines
    assert "dhcp-range=172.16.0.2,172.16.0.150,12h" in lines
    assert dnsmasq_config().startswith("\n")


def test_default_route_interface_takes_first_route():
    routes = '[{"dst":"default","dev":"wlan0"},{"dst":"default","dev":"eth1"}]'
    assert default_route_interface(routes) == "wlan0"


def test_default_route_interface_accepts_bytes():
    assert default_route_interface(b'[{"dev":"enp3s0"}]') == "enp3s0"


@pytest.mark.parametrize("routes", ["[]", '[{"dst":"default"}]', "{}", '[{"dev": 3}]'])
def test_default_route_interface_missing_device(routes):
    with pytest.raises(ValueError, match="Failed to get host interface"):
        default_route_interface(routes)


def test_default_route_interface_invalid_json():
    with pytest.raises(ValueError, match="Failed to parse route JSON"):
        default_route_interface("not json")


def test_check_devices(system):
    system.handler = lambda argv: (0, "") if argv[-1] == TAP_DEV else (1, "")
    assert check_tap_exists() is True
    assert check_bridge_exists() is False
    assert system.calls == [
        ["ip", "link", "show", TAP_DEV],
        ["ip", "link", "show", BRIDGE_DEV],
    ]


def test_dnsmasq_is_installed(system):
    system.handler = lambda argv: (1, "")
    assert dnsmasq_is_installed() is False
    assert system.calls == [["which", "dnsmasq"]]


def test_restart_dnsmasq(system):
    result = restart_dnsmasq()
    assert result is None
    assert system.calls == [
        ["systemctl", "enable", "dnsmasq"],
        ["systemctl", "restart", "dnsmasq"],
    ]


def test_setup_dnsmasq_exits_when_missing(system, capsys):
    system.handler = lambda argv: (1, "") if argv[0] == "which" else (0, "")
    with pytest.raises(SystemExit) as excinfo:
        setup_dnsmasq()
    assert excinfo.value.code == 1
    assert "not installed" in capsys.readouterr().out


def test_setup_network_already_configured(system, capsys):
    setup_network()
    assert system.calls == [
        ["ip", "link", "show", TAP_DEV],
        ["ip", "addr", "flush", "dev", TAP_DEV],
        ["ip", "link", "show", TAP_DEV],
        ["ip", "link", "show", BRIDGE_DEV],
    ]
    assert "Skipping setup" in capsys.readouterr().out


def test_setup_network_from_scratch(system):
    def handler(argv):
        if argv[:3] == ["ip", "link", "show"]:
            return 1, ""
        if argv[0] == "cat":
            return 0, "0\n"
        if argv[:2] == ["ip", "-j"]:
            return 0, '[{"dst":"default","dev":"enp3s0"}]'
        if argv[0] == "iptables" and "-C" in argv:
            return 1, ""
        return 0, ""

    system.handler = handler
    result = setup_network()
    assert result is None

    calls = system.calls
    assert ["ip", "addr", "flush", "dev", TAP_DEV] not in calls
    assert ["ip", "tuntap", "add", "dev", TAP_DEV, "mode", "tap"] in calls
    assert ["ip", "link", "set", TAP_DEV, "master", BRIDGE_DEV] in calls
    assert ["sysctl", "-w", "net.ipv4.ip_forward=1"] in calls
    append = ["iptables", "-t", "nat", "-A", "POSTROUTING", "-o", "enp3s0", "-j", "MASQUERADE"]
    assert append in calls
    assert calls.index(append) < calls.index(["iptables", "-P", "FORWARD", "ACCEPT"])
    assert ["which", "dnsmasq"] in calls


def test_setup_network_keeps_existing_nat_rule(system):
    def handler(argv):
        if argv[:3] == ["ip", "link", "show"]:
            return 1, ""
        if argv[0] == "cat":
            return 0, "1\n"
        if argv[:2] == ["ip", "-j"]:
            return 0, '[{"dev":"eth0"}]'
        return 0, ""

    system.handler = handler
    result = setup_network()
    assert result is None

    assert not any(call[0] == "sysctl" for call in system.calls)
    assert not any(call[0] == "iptables" and "-A" in call for call in system.calls)


def test_configure_guest_network(system):
    result = configure_guest_network("/keys/id_rsa")
    assert result is None or result.returncode == 0
    assert system.calls == [
        [
            "ssh",
            "-i",
            "/keys/id_rsa",
            "-o",
            "StrictHostKeyChecking=no",
            f"root@{GUEST_IP}",
            f"echo 'nameserver {BRIDGE_IP}' > /etc/resolv.conf",
        ]
    ]