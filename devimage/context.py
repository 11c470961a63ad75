import os
from dataclasses import dataclass, field
from typing import Optional

from .errors import InputError
from .geometry import PartitionGeometry
from .resources import ResourceSet


@dataclass(frozen=True)
class BuildRequest:
    """What to build and where"""
    source: str
    image: str
    partition_image: str
    workdir: str = "."
    debug: bool = False

    def validate(self) -> "BuildRequest":
        """Check every path before anything is touched; returns a normalized copy"""
        if not os.path.isdir(self.source):
            raise InputError(f"Source root file system not found: {self.source}")
        if not os.access(self.source, os.R_OK | os.X_OK):
            raise InputError(f"Source root file system is not readable: {self.source}")
        if not os.path.isdir(self.workdir):
            raise InputError(f"Working directory not found: {self.workdir}")
        if not os.access(self.workdir, os.W_OK | os.X_OK):
            raise InputError(f"Working directory is not writable: {self.workdir}")

        image = os.path.abspath(self.image)
        partition_image = os.path.abspath(self.partition_image)
        if image == partition_image:
            raise InputError("Device image and partition image must be different files")
        for path in (image, partition_image):
            if os.path.isdir(path):
                raise InputError(f"Output path is a directory: {path}")
            parent = os.path.dirname(path)
            if not os.path.isdir(parent) or not os.access(parent, os.W_OK):
                raise InputError(f"Output directory is not writable: {parent}")

        return BuildRequest(
            source=os.path.abspath(self.source),
            image=image,
            partition_image=partition_image,
            workdir=os.path.abspath(self.workdir),
            debug=self.debug,
        )

    @property
    def outputs(self):
        return (self.image, self.partition_image)


@dataclass
class BuildContext:
    """State of one build, shared by the builder and the failure guard"""
    request: BuildRequest
    geometry: PartitionGeometry
    resources: ResourceSet = field(default_factory=ResourceSet)
    workspace: Optional[str] = None
