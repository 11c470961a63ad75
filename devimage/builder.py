import os
import tempfile

from . import commands
from .context import BuildContext, BuildRequest
from .errors import ImageIOError, PrivilegeError
from .geometry import PartitionGeometry, calculate_geometry
from .guard import FailureGuard, remove_workspace
from .log import debug, log

LABELS = {
    "firmware": "boot",
    "data": "data",
    "root": "primary",
}

# mount points of the nested partitions, relative to the root mount
NESTED_MOUNTS = [
    ("firmware", os.path.join("boot", "firmware")),
    ("data", "data"),
]


# === PREFLIGHT ===
def check_root():
    if os.geteuid() != 0:
        raise PrivilegeError("This tool must be run as root")


def measure_source(request: BuildRequest) -> PartitionGeometry:
    debug("Calculating partition sizes...")
    size_kb = commands.disk_usage_kb(request.source)
    geometry = calculate_geometry(size_kb)
    debug(f"Source size: {size_kb} KiB")
    for line in geometry.describe():
        debug(f"  {line}")
    return geometry


def check_free_space(request: BuildRequest, geometry: PartitionGeometry):
    needed = {}
    needed[os.path.dirname(request.image)] = geometry.image_size
    parent = os.path.dirname(request.partition_image)
    needed[parent] = needed.get(parent, 0) + geometry.root_size

    for directory, size in needed.items():
        statvfs = os.statvfs(directory)
        free_space = statvfs.f_frsize * statvfs.f_bavail
        if free_space < size:
            raise ImageIOError(
                f"Insufficient disk space in {directory}. "
                f"Need {size//1024//1024} MiB, available {free_space//1024//1024} MiB"
            )


class ImageBuilder:
    """Assembles the device image and root partition image for one context.

    Every step assumes the previous one completed. Resources are recorded in
    ``context.resources`` the moment they are acquired so an abort at any
    point can be unwound by :func:`devimage.guard.teardown`.
    """

    def __init__(self, context: BuildContext):
        self.context = context
        self.request = context.request
        self.geometry = context.geometry
        self.resources = context.resources

    def run(self):
        self.create_workspace()
        self.allocate()
        self.partition()
        self.attach_loops()
        self.format()
        self.label()
        self.mount()
        self.populate()
        self.unmount()
        self.reclaim()
        self.extract()
        self.release()

    def create_workspace(self):
        try:
            self.context.workspace = tempfile.mkdtemp(prefix="devimage.", dir=self.request.workdir)
        except OSError as e:
            raise ImageIOError(f"Unable to create workspace in {self.request.workdir}: {e}") from e
        debug(f"Workspace: {self.context.workspace}")

    def allocate(self):
        log(f"Allocating {self.geometry.image_size} byte device image {self.request.image}")
        commands.allocate_image(self.request.image, self.geometry.image_size)

    def partition(self):
        log("Writing partition table...")
        commands.write_partition_table(self.request.image, self.geometry)

    def attach_loops(self):
        log("Attaching loop devices...")
        g = self.geometry
        image = self.request.image
        self.resources.attach_loop(
            "firmware", commands.attach_loop(image, g.firmware_offset, g.firmware_size))
        self.resources.attach_loop(
            "data", commands.attach_loop(image, g.data_offset, g.data_size))
        # root runs to the end of the backing file
        self.resources.attach_loop("root", commands.attach_loop(image, g.root_offset))

    def format(self):
        log("Creating file systems...")
        commands.make_fat(self.resources.loop("firmware"))
        commands.make_ext4(self.resources.loop("data"))
        commands.make_ext4(self.resources.loop("root"))

    def label(self):
        debug("Labelling partitions")
        commands.label_fat(self.resources.loop("firmware"), LABELS["firmware"])
        commands.label_ext4(self.resources.loop("data"), LABELS["data"])
        commands.label_ext4(self.resources.loop("root"), LABELS["root"])

    def mount(self):
        log("Mounting partitions...")
        root_mount = os.path.join(self.context.workspace, "root")
        os.makedirs(root_mount, exist_ok=True)
        commands.mount(self.resources.loop("root"), root_mount)
        self.resources.attach_mount("root", root_mount)

        for role, relative in NESTED_MOUNTS:
            mount_point = os.path.join(root_mount, relative)
            os.makedirs(mount_point, exist_ok=True)
            commands.mount(self.resources.loop(role), mount_point)
            self.resources.attach_mount(role, mount_point)

    def populate(self):
        log(f"Copying {self.request.source} to root file system...")
        commands.copy_tree(self.request.source, self.resources.mount_point("root"))

    def unmount(self):
        log("Unmounting partitions...")
        self.resources.unmount_all(commands.unmount)

    def reclaim(self):
        debug("Zeroing unused blocks of the root file system")
        commands.zero_free_blocks(self.resources.loop("root"))

    def extract(self):
        log(f"Extracting root partition to {self.request.partition_image}")
        commands.copy_device(self.resources.loop("root"), self.request.partition_image)

    def release(self):
        debug("Detaching loop devices")
        self.resources.detach_all(commands.detach_loop)
        remove_workspace(self.context, strict=True)


def build_image(request: BuildRequest, geometry: PartitionGeometry) -> BuildContext:
    """Run a full build for an already validated request"""
    context = BuildContext(request=request, geometry=geometry)
    with FailureGuard(context) as guard:
        ImageBuilder(context).run()
        guard.disarm()
    return context
