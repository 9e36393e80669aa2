import os
import subprocess
import threading

import pytest

from fireup import process


class FakeRun:
    def __init__(self, running):
        self.calls = []
        self.running = running
        self.lock = threading.Lock()

    def __call__(self, argv, **kwargs):
        argv = list(argv)
        with self.lock:
            self.calls.append(argv)
        code = 0
        if argv[0] == "pgrep" and not self.running:
            code = 1
        return subprocess.CompletedProcess(argv, code, stdout="", stderr="")


def install(monkeypatch, running):
    monkeypatch.setattr(os, "getuid", lambda: 0)
    fake = FakeRun(running)
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


@pytest.mark.parametrize("running", [True, False])
def test_is_running_follows_pgrep(monkeypatch, running):
    fake = install(monkeypatch, running)
    assert process.is_running() is running
    assert fake.calls == [["pgrep", "firecracker"]]


def test_stop_when_not_running_removes_socket(monkeypatch):
    fake = install(monkeypatch, False)
    result = process.stop()
    assert result is None
    assert fake.calls == [
        ["pgrep", "firecracker"],
        ["rm", "-rf", process.FIRECRACKER_SOCKET],
    ]


def test_stop_when_running_kills_process(monkeypatch):
    fake = install(monkeypatch, True)
    result = process.stop()
    assert result is None
    assert fake.calls == [
        ["pgrep", "firecracker"],
        ["killall", "-s", "KILL", "firecracker"],
        ["rm", "-rf", process.FIRECRACKER_SOCKET],
    ]


def test_start_launches_firecracker_after_stop(monkeypatch):
    fake = install(monkeypatch, False)
    thread = process.start()
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert fake.calls == [
        ["pgrep", "firecracker"],
        ["rm", "-rf", process.FIRECRACKER_SOCKET],
        ["firecracker", "--api-sock", "/tmp/firecracker.sock"],
    ]