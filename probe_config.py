"""
Probe configuration and platform detection.

Environment notes
─────────────────
• Native       → Linux with the usual sysfs / procfs layout
• Constrained  → Android / Termux: no DMI, no devicetree, restricted /proc;
                 device facts come from the `getprop` property service
• Snap         → when $SNAP is set the host root is visible under
                 /var/lib/snapd/hostfs, so probe paths are resolved there

The platform mode is decided once (one `getprop` spawn) and carried in an
immutable ProbeConfig that every probe receives.
"""

import enum
import logging
import os
import subprocess
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

from probe_errors import CommandError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3.0

# Property that exists on every Android build; `getprop` itself only exists there.
_CAPABILITY_COMMAND = ["getprop", "ro.build.version.release"]

_SNAP_HOSTFS = "/var/lib/snapd/hostfs"

TERMINAL_WALK_MODES = ("single", "full")
MUSIC_PLAYERS = ("playerctl", "mpd")
DEFAULT_MPD_ADDRESS = "127.0.0.1:6600"


class PlatformMode(enum.Enum):
    NATIVE = "native"
    CONSTRAINED = "constrained"


class CommandResult(NamedTuple):
    exit_code: int
    stdout: bytes


Runner = Callable[[Sequence[str], float], CommandResult]


def run_command(args: Sequence[str], timeout: float = DEFAULT_TIMEOUT) -> CommandResult:
    """
    Spawn *args*, wait at most *timeout* seconds and capture stdout.

    Raises CommandError when the process cannot be started or times out;
    a non-zero exit status is returned, not raised.
    """
    try:
        result = subprocess.run(
            list(args),
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise CommandError(args, f"timed out after {timeout}s") from e
    except OSError as e:
        raise CommandError(args, e.strerror or str(e)) from e
    return CommandResult(result.returncode, result.stdout)


def platform_mode(runner: Runner = run_command, timeout: float = DEFAULT_TIMEOUT) -> PlatformMode:
    """
    Classify the host by trying the Android property service.

    Exit status 0 → CONSTRAINED.  Anything else, including "command not
    found" or a spawn failure, → NATIVE.  Spawns a process on every call.
    """
    try:
        result = runner(_CAPABILITY_COMMAND, timeout)
    except CommandError as e:
        logger.debug("capability probe failed, assuming native: %s", e)
        return PlatformMode.NATIVE
    if result.exit_code == 0:
        return PlatformMode.CONSTRAINED
    return PlatformMode.NATIVE


def _check_timeout(timeout: float) -> None:
    if timeout <= 0:
        raise ValueError(f"command timeout must be positive, got {timeout}")


def parse_mpd_address(address: str) -> Tuple[str, int]:
    """"host:port" → (host, port); raises ValueError when malformed."""
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"mpd address must look like host:port, got {address!r}")
    return host, int(port)


@dataclass(frozen=True)
class ProbeConfig:
    """Everything a probe needs to know about where and how to look."""

    mode: PlatformMode = PlatformMode.NATIVE
    root: Path = Path("/")
    terminal_walk: str = "single"
    command_timeout: float = DEFAULT_TIMEOUT
    music_player: Optional[str] = None
    mpd_address: str = DEFAULT_MPD_ADDRESS
    runner: Runner = run_command

    def __post_init__(self):
        if self.terminal_walk not in TERMINAL_WALK_MODES:
            raise ValueError(
                f"terminal_walk must be one of {TERMINAL_WALK_MODES}, got {self.terminal_walk!r}"
            )
        if self.music_player is not None and self.music_player not in MUSIC_PLAYERS:
            raise ValueError(f"unsupported music player {self.music_player!r}")
        _check_timeout(self.command_timeout)
        parse_mpd_address(self.mpd_address)
        object.__setattr__(self, "root", Path(self.root))

    @property
    def constrained(self) -> bool:
        return self.mode is PlatformMode.CONSTRAINED

    def path(self, absolute: str) -> Path:
        """Resolve an absolute host path under the configured root."""
        return self.root / absolute.lstrip("/")

    def run(self, args: List[str]) -> CommandResult:
        return self.runner(args, self.command_timeout)


def _default_root() -> Path:
    override = os.environ.get("HOSTPROBE_ROOT")
    if override:
        return Path(override)
    if os.environ.get("SNAP"):
        return Path(_SNAP_HOSTFS)
    return Path("/")


def load_config(runner: Runner = run_command) -> ProbeConfig:
    """Build a ProbeConfig from HOSTPROBE_* variables, probing the platform if needed."""
    try:
        timeout = float(os.environ.get("HOSTPROBE_TIMEOUT", DEFAULT_TIMEOUT))
    except ValueError as e:
        raise ValueError(f"HOSTPROBE_TIMEOUT is not a number: {e}") from e
    _check_timeout(timeout)

    mode_name = os.environ.get("HOSTPROBE_MODE", "").strip().lower()
    if mode_name:
        try:
            mode = PlatformMode(mode_name)
        except ValueError as e:
            raise ValueError(f"HOSTPROBE_MODE must be 'native' or 'constrained', got {mode_name!r}") from e
    else:
        mode = platform_mode(runner, timeout)
    logger.debug("platform mode: %s", mode.value)

    return ProbeConfig(
        mode=mode,
        root=_default_root(),
        terminal_walk=os.environ.get("HOSTPROBE_TERMINAL_WALK", "single").strip().lower(),
        command_timeout=timeout,
        music_player=os.environ.get("HOSTPROBE_MUSIC") or None,
        mpd_address=os.environ.get("HOSTPROBE_MPD") or DEFAULT_MPD_ADDRESS,
        runner=runner,
    )


@lru_cache(maxsize=None)
def get_config() -> ProbeConfig:
    """Process-wide configuration, computed on first use."""
    return load_config()
