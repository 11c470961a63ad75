"""Build partitioned device images from a root file system tree."""

from .builder import ImageBuilder, build_image
from .context import BuildContext, BuildRequest
from .errors import (
    BuildInterrupted, DependencyError, FormatError, ImageBuildError,
    ImageIOError, InputError, PrivilegeError, ResourceError
)
from .geometry import PartitionGeometry, calculate_geometry
from .guard import FailureGuard, teardown
from .resources import ResourceHandle, ResourceSet

__version__ = "1.0.0"
