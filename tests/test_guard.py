import os
import signal

import pytest

from devimage.context import BuildContext
from devimage.errors import ResourceError
from devimage.guard import FailureGuard, teardown


@pytest.fixture
def context(request_, geometry):
    return BuildContext(request=request_, geometry=geometry)


def test_disarmed_guard_leaves_outputs(fake_host, context):
    open(context.request.image, "wb").close()
    with FailureGuard(context) as guard:
        guard.disarm()
    assert os.path.exists(context.request.image)
    assert fake_host.calls == []


def test_armed_guard_removes_outputs_on_error(fake_host, context):
    for path in context.request.outputs:
        open(path, "wb").close()
    context.resources.attach_loop("firmware", "/dev/loop7")

    with pytest.raises(RuntimeError):
        with FailureGuard(context):
            raise RuntimeError("boom")

    assert not any(os.path.exists(p) for p in context.request.outputs)
    assert fake_host.calls == [["losetup", "--detach", "/dev/loop7"]]
    assert context.resources.all_unused()


def test_guard_exits_armed_without_error(fake_host, context):
    open(context.request.image, "wb").close()
    with FailureGuard(context):
        pass
    assert not os.path.exists(context.request.image)


def test_signal_after_disarm_is_ignored(fake_host, context):
    with FailureGuard(context) as guard:
        guard.disarm()
        os.kill(os.getpid(), signal.SIGHUP)
    assert not guard.armed


def test_signal_handlers_restored(fake_host, context):
    before = {s: signal.getsignal(s) for s in FailureGuard.SIGNALS}
    with FailureGuard(context) as guard:
        assert all(signal.getsignal(s) == guard._on_signal for s in FailureGuard.SIGNALS)
        guard.disarm()
    assert {s: signal.getsignal(s) for s in FailureGuard.SIGNALS} == before


def test_teardown_twice_is_harmless(fake_host, context, tmp_path):
    workspace = tmp_path / "work" / "devimage.test"
    (workspace / "root").mkdir(parents=True)
    context.workspace = str(workspace)
    context.resources.attach_loop("root", "/dev/loop2")
    context.resources.attach_mount("root", str(workspace / "root"))

    teardown(context)
    teardown(context)

    assert fake_host.calls == [
        ["umount", str(workspace / "root")],
        ["losetup", "--detach", "/dev/loop2"],
    ]
    assert not workspace.exists()


def test_strict_teardown_raises(fake_host, context):
    fake_host.fail_when(lambda cmd: cmd[0] == "losetup")
    context.resources.attach_loop("data", "/dev/loop1")
    with pytest.raises(ResourceError):
        teardown(context, strict=True)
    assert not context.resources.all_unused()
