"""
Probe error types.

A probe either returns a display string or raises one of these.  Semantic
misses (no database match, no terminal found) are never errors; probes turn
them into "N/A (...)" strings themselves.
"""


class ProbeError(Exception):
    """Base class for every failure a probe is allowed to surface."""


class ProbeIOError(ProbeError):
    """A required file or pseudo-file is missing or unreadable."""

    def __init__(self, path, reason: str = ""):
        self.path = str(path)
        self.reason = reason
        msg = f"cannot read {self.path}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class ProbeParseError(ProbeError, ValueError):
    """A field was present but malformed."""


class CommandError(ProbeError):
    """An external command could not be spawned or did not finish in time."""

    def __init__(self, args, reason: str = ""):
        self.command = list(args)
        msg = f"could not run `{' '.join(self.command)}`"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
