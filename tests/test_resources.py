import pytest

from devimage.errors import ResourceError
from devimage.resources import ATTACHED, UNUSED, ResourceHandle, ResourceSet


def test_release_of_unused_handle_is_noop():
    handle = ResourceHandle("root", "loop")
    calls = []
    assert handle.release(calls.append) is False
    assert handle.release(calls.append) is False
    assert calls == []
    assert handle.state == UNUSED


def test_attach_then_release():
    handle = ResourceHandle("root", "loop")
    handle.attach("/dev/loop3")
    assert handle.state == ATTACHED
    released = []
    assert handle.release(released.append) is True
    assert released == ["/dev/loop3"]
    assert handle.state == UNUSED


def test_double_attach_is_an_error():
    handle = ResourceHandle("data", "mount")
    handle.attach("/mnt/a")
    with pytest.raises(ResourceError):
        handle.attach("/mnt/b")


def test_failed_release_keeps_handle_attached():
    handle = ResourceHandle("root", "mount")
    handle.attach("/mnt/root")

    def busy(path):
        raise ResourceError(f"{path} busy")

    with pytest.raises(ResourceError):
        handle.release(busy)
    assert handle.attached
    assert handle.path == "/mnt/root"


def test_release_in_reverse_acquisition_order():
    resources = ResourceSet()
    resources.attach_mount("root", "/w/root")
    resources.attach_mount("firmware", "/w/root/boot/firmware")
    resources.attach_mount("data", "/w/root/data")

    released = []
    resources.unmount_all(released.append)
    assert released == ["/w/root/data", "/w/root/boot/firmware", "/w/root"]
    assert resources.all_unused()

    # a second pass has nothing left to do
    resources.unmount_all(released.append)
    assert len(released) == 3


def test_lenient_release_continues_past_failures():
    resources = ResourceSet()
    for role, device in [("firmware", "/dev/loop0"), ("data", "/dev/loop1"), ("root", "/dev/loop2")]:
        resources.attach_loop(role, device)

    released = []

    def detach(device):
        if device == "/dev/loop1":
            raise ResourceError("device busy")
        released.append(device)

    resources.detach_all(detach, strict=False)
    assert released == ["/dev/loop2", "/dev/loop0"]
    assert [h.path for h in resources.attached()] == ["/dev/loop1"]

    # once the device frees up, the remaining handle can still be released
    resources.detach_all(released.append)
    assert resources.all_unused()


def test_strict_release_stops_at_first_failure():
    resources = ResourceSet()
    resources.attach_loop("firmware", "/dev/loop0")
    resources.attach_loop("root", "/dev/loop2")

    def detach(device):
        raise ResourceError(f"cannot detach {device}")

    with pytest.raises(ResourceError):
        resources.detach_all(detach)
    assert len(resources.attached()) == 2
