import os
import shutil
import signal

from . import commands
from .errors import BuildInterrupted, ResourceError
from .log import debug, error, warn

# === CLEANUP HANDLING ===
def remove_workspace(context, strict=False):
    workspace = context.workspace
    if not workspace:
        return
    if any(h.attached for h in context.resources.mounts.values()):
        # never recurse into a directory that still has a file system mounted below it
        if strict:
            raise ResourceError(f"Refusing to remove {workspace}: mounts still attached")
        warn(f"Leaving {workspace} in place, mounts still attached")
        return
    debug(f"Removing temp dir {workspace}")
    if os.path.exists(workspace):
        shutil.rmtree(workspace, ignore_errors=not strict)
    context.workspace = None


def teardown(context, strict=False):
    """Unmount, detach and remove whatever the build still holds.

    With ``strict`` unset every failure is logged and skipped so that as much
    as possible gets released; the failing handle stays marked attached.
    """
    debug("Executing cleanup procedures...")
    context.resources.unmount_all(commands.unmount, strict=strict)
    context.resources.detach_all(commands.detach_loop, strict=strict)
    remove_workspace(context, strict=strict)


class FailureGuard:
    """Tear the build down on any exit that was not explicitly disarmed.

    Termination signals are turned into :class:`BuildInterrupted` while the
    guard is armed, so signals and errors leave through the same path: full
    teardown, removal of both output files, then a diagnostic.
    """
    SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)

    def __init__(self, context):
        self.context = context
        self.armed = False
        self._previous = {}

    def __enter__(self):
        for signum in self.SIGNALS:
            self._previous[signum] = signal.signal(signum, self._on_signal)
        self.armed = True
        debug("Failure guard armed")
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if self.armed:
                self.trigger(exc)
        finally:
            self._restore_signals()
        return False

    def disarm(self):
        self.armed = False
        debug("Failure guard disarmed")

    def trigger(self, exc=None):
        # signals arriving from here on are ignored by _on_signal
        self.armed = False
        error(f"Build failed: {exc}" if exc is not None else "Build aborted")
        teardown(self.context)
        for path in self.context.request.outputs:
            if commands.remove_file(path):
                debug(f"Removed partial output {path}")
        error("Abnormal termination: resources released and partial outputs removed")

    def _on_signal(self, signum, frame):
        if not self.armed:
            warn(f"Ignoring {signal.Signals(signum).name}, build is finishing")
            return
        raise BuildInterrupted(signum)

    def _restore_signals(self):
        for signum, handler in self._previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous = {}
