"""Error taxonomy for image builds.

Every error carries the process exit code the CLI reports for it.
"""

import signal


class ImageBuildError(Exception):
    """Generic build failure"""
    exit_code = 1


class InputError(ImageBuildError):
    """Missing or invalid paths or parameters"""
    exit_code = 2


class DependencyError(ImageBuildError):
    """A required host tool is not installed"""
    exit_code = 3


class FormatError(ImageBuildError):
    """Partition table, file-system or label creation failed"""
    exit_code = 4


class ResourceError(ImageBuildError):
    """Loop device or mount operation failed"""
    exit_code = 5


class ImageIOError(ImageBuildError):
    """Allocation, copy or extraction failed"""
    exit_code = 6


class PrivilegeError(ImageBuildError):
    """Not running with root privileges"""
    exit_code = 7


class BuildInterrupted(ImageBuildError):
    """A termination signal arrived while the build was running"""

    def __init__(self, signum):
        self.signum = signum
        super().__init__(f"Received {signal.Signals(signum).name}")
