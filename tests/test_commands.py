import io
import os
import subprocess
import sys
from pathlib import Path

import pytest

from fireup.commands import check_kvm_support, down, init, logs, reset, ssh, status, up
from fireup.config import Distro, read_config
from fireup.network import GUEST_IP
from fireup.options import VmOptions


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    app_dir = tmp_path / ".fireup"
    app_dir.mkdir()
    return app_dir


def _install(monkeypatch, failing=()):
    recorded = []

    def fake_run(argv, *args, **kwargs):
        recorded.append(list(argv))
        code = 1 if argv[0] in failing else 0
        return subprocess.CompletedProcess(argv, code, stdout="", stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)
    monkeypatch.setattr(os, "getuid", lambda: 0)
    return recorded


def test_status_running(monkeypatch, capsys):
    _install(monkeypatch)
    assert status() is True
    assert "Firecracker MicroVM is running." in capsys.readouterr().out


def test_status_stopped(monkeypatch, capsys):
    _install(monkeypatch, failing={"pgrep"})
    assert status() is False
    assert "Firecracker MicroVM is not running." in capsys.readouterr().out


def test_down_kills_running_firecracker(monkeypatch):
    calls = _install(monkeypatch)
    result = down()
    assert result is None
    assert ["killall", "-s", "KILL", "firecracker"] in calls
    assert ["rm", "-rf", "/tmp/firecracker.sock"] in calls


def test_down_when_not_running_only_removes_socket(monkeypatch):
    calls = _install(monkeypatch, failing={"pgrep"})
    result = down()
    assert result is None
    assert [c[0] for c in calls] == ["pgrep", "rm"]


@pytest.mark.parametrize("follow", [True, False])
def test_logs(home, monkeypatch, follow):
    calls = _install(monkeypatch)
    logs(follow)
    logfile = f"{home}/firecracker.log"
    expected = ["tail", "-f", logfile] if follow else ["tail", logfile]
    assert calls == [expected]


def test_ssh_without_key(home, monkeypatch):
    _install(monkeypatch)
    with pytest.raises(FileNotFoundError, match="No SSH key file found"):
        ssh()


def test_ssh_uses_key(home, monkeypatch):
    (home / "id_rsa").write_text("key")
    calls = _install(monkeypatch)
    result = ssh()
    assert result is None or result.returncode == 0
    assert len(calls) == 1
    argv = calls[0]
    assert argv[:3] == ["ssh", "-i", f"{home}/id_rsa"]
    assert argv[-1] == f"root@{GUEST_IP}"


def test_reset_cancelled_keeps_files(home, monkeypatch, capsys):
    (home / "ubuntu-24.04.ext4").write_text("x")
    calls = _install(monkeypatch)
    monkeypatch.setattr(sys, "stdin", io.StringIO("no\n"))
    reset()
    assert (home / "ubuntu-24.04.ext4").exists()
    assert calls == []
    assert "Reset cancelled." in capsys.readouterr().out


def test_reset_removes_ext4_only(home, monkeypatch):
    (home / "ubuntu-24.04.ext4").write_text("x")
    (home / "debian-amd64.ext4").write_text("x")
    (home / "id_rsa").write_text("key")
    calls = _install(monkeypatch, failing={"pgrep"})
    monkeypatch.setattr(sys, "stdin", io.StringIO("yes\n"))
    result = reset()
    assert result is None
    assert sorted(p.name for p in home.iterdir()) == ["id_rsa"]
    assert ["rm", "-rf", "/tmp/firecracker.sock"] in calls


def test_check_kvm_support_missing(monkeypatch):
    _install(monkeypatch, failing={"sh"})
    with pytest.raises(RuntimeError, match="KVM is not available"):
        check_kvm_support()


def test_check_kvm_support_ok(monkeypatch, capsys):
    calls = _install(monkeypatch)
    check_kvm_support()
    assert calls == [["sh", "-c", "lsmod | grep kvm"]]
    assert "[✓] OK" in capsys.readouterr().out


def test_up_stops_without_kvm(monkeypatch):
    calls = _install(monkeypatch, failing={"sh"})
    with pytest.raises(RuntimeError):
        up(VmOptions(ubuntu=True, vcpu=1, memory=512))
    assert all(argv[0] != "firecracker" for argv in calls)
    assert len(calls) == 1


def test_init_writes_default_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    init()
    config = read_config(Path(tmp_path) / "fire.toml")
    assert config.distro is Distro.UBUNTU
    assert config.vm.memory == 512
    assert config.vm.vcpu == (os.cpu_count() or 1)