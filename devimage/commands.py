import os
import shutil
import subprocess

from .errors import (
    DependencyError, FormatError, ImageBuildError, ImageIOError, InputError, ResourceError
)
from .log import debug

REQUIRED_TOOLS = [
    "du", "dd", "sfdisk", "losetup", "mount", "umount",
    "mkfs.vfat", "mkfs.ext4", "fatlabel", "e2label",
    "rsync", "zerofree"
]

# Package changelogs are dropped from the root file system to save space
CHANGELOG_EXCLUDES = [
    "usr/share/doc/*/changelog.Debian.gz",
    "usr/share/doc/*/changelog.gz",
]

# === COMMAND EXECUTION ===
def run_command(cmd, error=ImageBuildError, check=True, capture_output=True, input_text=None):
    debug(f"Executing: {' '.join(cmd)}")
    try:
        return subprocess.run(
            cmd,
            check=check,
            capture_output=capture_output,
            text=True,
            input=input_text
        )
    except subprocess.CalledProcessError as e:
        raise error(f"Command failed: {' '.join(e.cmd)}\nError: {(e.stderr or '').strip()}") from e
    except OSError as e:
        raise error(f"Unable to execute {cmd[0]}: {e}") from e

# === DEPENDENCY CHECK ===
def check_dependencies():
    debug("Verifying system dependencies...")
    missing = [tool for tool in REQUIRED_TOOLS if not shutil.which(tool)]
    if missing:
        raise DependencyError(f"Missing required tools: {', '.join(missing)}")

# === MEASUREMENT ===
def disk_usage_kb(path):
    """Recursive disk usage of ``path`` in KiB, as reported by du -sk"""
    result = run_command(["du", "-sk", path], error=InputError)
    try:
        return int(result.stdout.split()[0])
    except (IndexError, ValueError):
        raise InputError(f"Unexpected du output for {path}: {result.stdout!r}")

# === IMAGE FILES ===
def allocate_image(path, size):
    try:
        with open(path, "wb") as f:
            f.truncate(size)
    except OSError as e:
        raise ImageIOError(f"Unable to create image file {path}: {e}") from e

def write_partition_table(path, geometry):
    layout = "\n".join([
        "label: dos",
        "unit: sectors",
        "",
        f"start={geometry.firmware_offset_sector}, size={geometry.firmware_sectors}, type=c, bootable",
        f"start={geometry.data_offset_sector}, size={geometry.data_sectors}, type=83",
        f"start={geometry.root_offset_sector}, size={geometry.root_sectors}, type=83",
    ]) + "\n"
    debug(f"Partition layout:\n{layout}")
    run_command(["sfdisk", "--no-reread", "--no-tell-kernel", path], error=FormatError, input_text=layout)

def copy_device(device, output_path):
    run_command(["dd", f"if={device}", f"of={output_path}", "bs=4M", "conv=fsync"], error=ImageIOError)

def remove_file(path):
    """Delete ``path`` if present; returns True when something was removed"""
    try:
        os.unlink(path)
    except FileNotFoundError:
        return False
    return True

# === LOOP DEVICES ===
def attach_loop(path, offset, sizelimit=None):
    cmd = ["losetup", "--find", "--show", "--offset", str(offset)]
    if sizelimit is not None:
        cmd += ["--sizelimit", str(sizelimit)]
    cmd.append(path)
    device = run_command(cmd, error=ResourceError).stdout.strip()
    if not device:
        raise ResourceError(f"losetup returned no device for {path} at offset {offset}")
    return device

def detach_loop(device):
    run_command(["losetup", "--detach", device], error=ResourceError)

# === FILE SYSTEMS ===
def make_fat(device):
    run_command(["mkfs.vfat", device], error=FormatError)

def make_ext4(device):
    run_command(["mkfs.ext4", "-q", device], error=FormatError)

def label_fat(device, label):
    run_command(["fatlabel", device, label], error=FormatError)

def label_ext4(device, label):
    run_command(["e2label", device, label], error=FormatError)

def zero_free_blocks(device):
    run_command(["zerofree", device], error=FormatError)

# === MOUNTS ===
def mount(device, mount_point):
    run_command(["mount", device, mount_point], error=ResourceError)

def unmount(mount_point):
    run_command(["umount", mount_point], error=ResourceError)

# === CONTENT ===
def copy_tree(source, destination, excludes=CHANGELOG_EXCLUDES):
    """Copy ``source`` into ``destination`` keeping permissions, owners, times and hard links"""
    cmd = ["rsync", "-aH"]
    # a leading slash anchors the pattern at the top of the transfer
    cmd += [f"--exclude=/{pattern}" for pattern in excludes]
    cmd += [f"{source.rstrip('/')}/", f"{destination.rstrip('/')}/"]
    run_command(cmd, error=ImageIOError)
