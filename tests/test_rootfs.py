import os
import subprocess

import pytest

from fireup import rootfs
from fireup.command import CommandError


class FakeRun:
    def __init__(self, handler=None):
        self.calls = []
        self.handler = handler

    def __call__(self, argv, **kwargs):
        argv = list(argv)
        self.calls.append(argv)
        code = self.handler(argv) if self.handler else 0
        return subprocess.CompletedProcess(argv, code, stdout="", stderr="boom")


@pytest.fixture
def fake(monkeypatch):
    monkeypatch.setattr(os, "getuid", lambda: 0)
    runner = FakeRun()
    monkeypatch.setattr(subprocess, "run", runner)
    return runner


def test_extract_skips_existing_dir(fake, tmp_path):
    result = rootfs.extract_squashfs("image.squashfs", str(tmp_path))
    assert result is None
    assert fake.calls == []


def test_extract_runs_unsquashfs(fake, tmp_path):
    out = str(tmp_path / "root")
    result = rootfs.extract_squashfs("image.squashfs", out)
    assert result is None
    assert fake.calls == [["unsquashfs", "-d", out, "image.squashfs"]]


def test_create_ext4_filesystem_as_root(fake):
    result = rootfs.create_ext4_filesystem("/tmp/tree", "/tmp/out.ext4", 400)
    assert result is None
    assert fake.calls == [
        ["chown", "-R", "root:root", "/tmp/tree"],
        ["truncate", "-s", "400M", "/tmp/out.ext4"],
        ["mkfs.ext4", "-d", "/tmp/tree", "-F", "/tmp/out.ext4"],
    ]


def test_create_ext4_filesystem_uses_sudo_when_not_root(monkeypatch):
    monkeypatch.setattr(os, "getuid", lambda: 1000)
    runner = FakeRun()
    monkeypatch.setattr(subprocess, "run", runner)
    result = rootfs.create_ext4_filesystem("/tmp/tree", "/tmp/out.ext4", 600)
    assert result is None
    commands = [call for call in runner.calls if call != ["sudo", "-h"]]
    assert commands == [
        ["sudo", "chown", "-R", "root:root", "/tmp/tree"],
        ["truncate", "-s", "600M", "/tmp/out.ext4"],
        ["sudo", "mkfs.ext4", "-d", "/tmp/tree", "-F", "/tmp/out.ext4"],
    ]


def test_create_ext4_filesystem_failure(monkeypatch):
    monkeypatch.setattr(os, "getuid", lambda: 0)
    runner = FakeRun(lambda argv: 1 if argv[0] == "mkfs.ext4" else 0)
    monkeypatch.setattr(subprocess, "run", runner)
    with pytest.raises(CommandError, match="Command mkfs.ext4 failed"):
        rootfs.create_ext4_filesystem("/tmp/tree", "/tmp/out.ext4", 500)