import argparse
import sys

from . import commands
from .builder import build_image, check_free_space, check_root, measure_source
from .context import BuildRequest
from .errors import ImageBuildError
from .log import DEBUG_LOG, Colors, debug, error, log, setup_logging

# === HELP TEXT ===
HELP_TEXT = """Make Device Image Tool

Purpose:
  Turns a prepared root file system directory into a bootable, partitioned
  device image plus a standalone image of the root partition.

Layout:
  1 MiB    partition table (MBR)
  128 MiB  firmware partition, FAT, bootable, label "boot"
  256 MiB  data partition, ext4, label "data"
  rest     root partition, ext4, label "primary"
           (source size + 25% for journal and reserved blocks)

Usage:
  make-device-image [OPTIONS] <source> <image> <partition_image>

Required Arguments:
  source           Root file system directory to copy into the image
  image            Path for the partitioned device image
  partition_image  Path for the standalone root partition image

Options:
  -w WORKDIR     Directory for the temporary workspace (default: current directory)
  -d             Enable debug output (verbose logging)
  -l LOG_FILE    Debug log file (default: ./make_device_image_debug.log)
  -n             Dry run: print the partition geometry and exit
  -h, --help     Show this help message

Notes:
  - Must be run as root (loop devices and mounts)
  - Package changelogs under /usr/share/doc are not copied
  - On any failure all loop devices and mounts are released and
    both output images are removed

Exit Codes:
  0 - Success
  1 - General error or abnormal termination
  2 - Invalid arguments
  3 - Missing dependencies
  4 - Partitioning or filesystem error
  5 - Loop device or mount error
  6 - I/O error
  7 - Not running as root
"""


def show_help(exit_code=0):
    print(HELP_TEXT)
    sys.exit(exit_code)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Make device image", add_help=False)
    parser.add_argument("-w", "--workdir", default=".",
                        help="Directory for the temporary workspace (default: current directory)")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug output")
    parser.add_argument("-l", "--log-file", default=DEBUG_LOG,
                        help=f"Debug log file (default: {DEBUG_LOG})")
    parser.add_argument("-n", "--dry-run", action="store_true",
                        help="Print the partition geometry and exit")
    parser.add_argument("-h", "--help", action="store_true", help="Show help message")
    parser.add_argument("source", nargs="?", help="Root file system directory")
    parser.add_argument("image", nargs="?", help="Path for the device image")
    parser.add_argument("partition_image", nargs="?", help="Path for the root partition image")

    args = parser.parse_args(argv)

    if args.help:
        show_help()
    if not args.source or not args.image or not args.partition_image:
        show_help(2)
    return args


# === MAIN SCRIPT ===
def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.debug, args.log_file)
    log("Starting device image build")
    debug(f"Command line: {' '.join(sys.argv)}")

    try:
        request = BuildRequest(
            source=args.source,
            image=args.image,
            partition_image=args.partition_image,
            workdir=args.workdir,
            debug=args.debug,
        ).validate()

        if args.dry_run:
            geometry = measure_source(request)
            for line in geometry.describe():
                print(line)
            return 0

        check_root()
        commands.check_dependencies()
        geometry = measure_source(request)
        check_free_space(request, geometry)
    except ImageBuildError as e:
        error(str(e))
        return e.exit_code

    try:
        build_image(request, geometry)
    except ImageBuildError as e:
        # already reported by the failure guard
        return e.exit_code
    except Exception:
        return 1

    log("Device image build completed successfully")
    for line in geometry.describe():
        log(f"  {line}")
    log(f"Device image: {request.image}")
    log(f"Partition image: {request.partition_image}")
    if args.log_file:
        log(f"Debug log: {args.log_file}")
    print(f"{Colors.YELLOW}Flash {request.image} to the target device; "
          f"{request.partition_image} can be used for root partition updates.{Colors.NC}")
    return 0


def run():
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        error("Operation cancelled by user")
        sys.exit(1)
