import subprocess
from pathlib import Path

import pytest

from devimage import commands
from devimage.context import BuildRequest
from devimage.geometry import calculate_geometry


class FakeHost:
    """Stands in for the host tools: records every command and fakes their output"""

    def __init__(self, du_kb=1024):
        self.du_kb = du_kb
        self.calls = []
        self.inputs = {}
        self.hooks = []
        self._next_loop = 0

    def fail_when(self, predicate):
        def hook(cmd):
            if predicate(cmd):
                raise subprocess.CalledProcessError(1, cmd, output="", stderr=f"{cmd[0]}: injected failure")
        self.hooks.append(hook)

    def on(self, hook):
        self.hooks.append(hook)

    def run(self, cmd, check=True, capture_output=False, text=True, input=None):
        cmd = list(cmd)
        self.calls.append(cmd)
        if input is not None:
            self.inputs[cmd[0]] = input
        for hook in self.hooks:
            hook(cmd)

        stdout = ""
        if cmd[0] == "losetup" and "--find" in cmd:
            stdout = f"/dev/loop{self._next_loop}\n"
            self._next_loop += 1
        elif cmd[0] == "du":
            stdout = f"{self.du_kb}\t{cmd[-1]}\n"
        elif cmd[0] == "dd":
            output = [arg[3:] for arg in cmd if arg.startswith("of=")][0]
            Path(output).write_bytes(b"")
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    def named(self, name):
        return [c for c in self.calls if c[0] == name]

    def programs(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def fake_host(monkeypatch):
    host = FakeHost()
    monkeypatch.setattr(commands.subprocess, "run", host.run)
    return host


@pytest.fixture
def source_tree(tmp_path):
    root = tmp_path / "rootfs"
    (root / "etc").mkdir(parents=True)
    (root / "etc" / "hostname").write_text("x")
    return root


@pytest.fixture
def request_(tmp_path, source_tree):
    out = tmp_path / "out"
    out.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    return BuildRequest(
        source=str(source_tree),
        image=str(out / "device.img"),
        partition_image=str(out / "root.img"),
        workdir=str(work),
    ).validate()


@pytest.fixture
def geometry():
    return calculate_geometry(1024)
