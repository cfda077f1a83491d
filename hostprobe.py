#!/usr/bin/env python3
"""
hostprobe - Independent probes describing the running machine

Every probe takes an optional ProbeConfig (default: the process-wide one)
and returns a display string, or raises a ProbeError subclass.  Lookups that
simply find nothing come back as "N/A (...)" text instead of errors.

Source selection
────────────────
• Native       → sysfs / procfs / /etc files
• Constrained  → `getprop` properties (Android / Termux), `whoami`, `hostname`

Usage:
    import hostprobe
    hostprobe.gpu()                  # → "NVIDIA Corporation GP104 [GeForce GTX 1080]"
    hostprobe.packages("pacman")     # → "1043"
    hostprobe.collect()              # → {"cpu": Outcome(...), ...}
"""

import glob
import logging
import os
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from mpd import MPDClient, MPDError
from rich.console import Console
from rich.table import Table

from cpu_model import resolve_cpu
from pci_ids import resolve_gpu
from probe_config import ProbeConfig, get_config, parse_mpd_address
from probe_errors import CommandError, ProbeError, ProbeIOError, ProbeParseError
from proc_tree import resolve_terminal

logger = logging.getLogger(__name__)

console = Console()

MUSIC_DISABLED = "N/A (music player support is not enabled)"
GETPROP_FAILED = "N/A (could not run `getprop`)"

OS_RELEASE_PATHS = ("/bedrock/etc/os-release", "/etc/os-release", "/usr/lib/os-release")

# Matched against /proc/*/comm when no desktop session variable is set
_WINDOW_MANAGERS = {
    "awesome": "Awesome",
    "berry": "Berry",
    "bspwm": "bspwm",
    "dwm": "dwm",
    "fluxbox": "Fluxbox",
    "herbstluftwm": "herbstluftwm",
    "hyprland": "Hyprland",
    "Hyprland": "Hyprland",
    "i3": "i3",
    "icewm": "IceWM",
    "openbox": "Openbox",
    "qtile": "Qtile",
    "river": "river",
    "spectrwm": "spectrwm",
    "sway": "Sway",
    "wayfire": "Wayfire",
    "xmonad": "xmonad",
    "xmonad-x86_64-l": "xmonad",
}

# manager → listing command; output lines are counted
_PACKAGE_COMMANDS = {
    "apk": ["apk", "info"],
    "apt": ["dpkg", "--get-selections"],
    "dpkg": ["dpkg", "--get-selections"],
    "dnf": ["dnf", "list", "installed"],
    "eopkg": ["eopkg", "list-installed"],
    "flatpak": ["flatpak", "list"],
    "pacman": ["pacman", "-Q", "-q"],
    "pip": ["pip", "list"],
    "rpm": ["rpm", "-q", "-a"],
    "xbps": ["xbps-query", "-l"],
}

# `pip list` prints a two-line table header
_HEADER_LINES = {"pip": 2}


def _config(config: Optional[ProbeConfig]) -> ProbeConfig:
    return config if config is not None else get_config()


def _read_text(config: ProbeConfig, absolute: str) -> str:
    path = config.path(absolute)
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as e:
        raise ProbeIOError(path, e.strerror or str(e)) from e


def _one_line(text: str) -> str:
    return text.strip().replace("\n", "")


def _command_output(config: ProbeConfig, args: List[str]) -> str:
    """Trimmed stdout of *args*; "" if it fails to run or exits non-zero."""
    try:
        result = config.run(args)
    except CommandError as e:
        logger.debug("%s", e)
        return ""
    if result.exit_code != 0:
        logger.debug("`%s` exited with %d", " ".join(args), result.exit_code)
        return ""
    return result.stdout.decode("utf-8", errors="replace").strip()


def _getprop(config: ProbeConfig, key: str) -> str:
    return _command_output(config, ["getprop", key])


# ── Single-file probes ─────────────────────────────────────────────────────────

def temp(config: Optional[ProbeConfig] = None) -> str:
    """CPU temperature in °C from thermal_zone0 (millidegrees)."""
    config = _config(config)
    raw = _read_text(config, "/sys/class/thermal/thermal_zone0/temp").strip()
    try:
        millidegrees = float(raw)
    except ValueError as e:
        raise ProbeParseError(f"thermal_zone0 reported {raw!r}") from e
    return f"{millidegrees / 1000:g}"


def kernel(config: Optional[ProbeConfig] = None) -> str:
    return _one_line(_read_text(_config(config), "/proc/sys/kernel/osrelease"))


def memory(config: Optional[ProbeConfig] = None) -> str:
    """Total memory in MB from /proc/meminfo."""
    meminfo = _read_text(_config(config), "/proc/meminfo")
    for line in meminfo.splitlines():
        if line.startswith("MemTotal"):
            value = line.rsplit(":", 1)[-1].replace("kB", "").strip()
            if not value:
                raise ProbeParseError("no memory size in MemTotal line")
            try:
                kb = int(value)
            except ValueError as e:
                raise ProbeParseError(f"bad MemTotal value {value!r}") from e
            return f"{kb // 1024} MB"
    raise ProbeParseError("no MemTotal line in /proc/meminfo")


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}" if n == 1 else f"{n} {unit}s"


def uptime(config: Optional[ProbeConfig] = None) -> str:
    """Uptime as "2 days 3 hours 1 minute"; zero days/hours are left out."""
    raw = _read_text(_config(config), "/proc/uptime")
    try:
        seconds = int(float(raw.split()[0]))
    except (ValueError, IndexError) as e:
        raise ProbeParseError(f"bad /proc/uptime content {raw!r}") from e
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    mins = (seconds % 3600) // 60
    parts = []
    if days:
        parts.append(_plural(days, "day"))
    if hours:
        parts.append(_plural(hours, "hour"))
    parts.append(_plural(mins, "minute"))
    return " ".join(parts)


# ── Platform-dependent probes ──────────────────────────────────────────────────

def device(config: Optional[ProbeConfig] = None) -> str:
    """Product name: DMI / devicetree natively, Android build props otherwise."""
    config = _config(config)
    if config.constrained:
        product = _getprop(config, "ro.product.name")
        model = _getprop(config, "ro.product.model")
        codename = _getprop(config, "ro.product.device")
        if not (product or model or codename):
            return GETPROP_FAILED
        return f"{product} {model} ({codename})"

    try:
        model = _read_text(config, "/sys/devices/virtual/dmi/id/product_name")
    except ProbeIOError:
        model = _read_text(config, "/sys/firmware/devicetree/base/model")
    # devicetree strings are NUL terminated
    return _one_line(model.replace("\x00", ""))


def _parse_os_release(text: str) -> Dict[str, str]:
    os_release: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if "=" in line and not line.startswith("#"):
            key, _, value = line.partition("=")
            os_release[key] = value.strip('"').strip("'")
    return os_release


def distro(config: Optional[ProbeConfig] = None) -> str:
    """Distribution name from os-release, or the Android release."""
    config = _config(config)
    if config.constrained:
        release = _getprop(config, "ro.build.version.release")
        flavor = _getprop(config, "ro.build.flavor")
        if not (release or flavor):
            return GETPROP_FAILED
        return f"Android {release} ({flavor})"

    text = None
    last_error: Optional[ProbeIOError] = None
    for candidate in OS_RELEASE_PATHS:
        try:
            text = _read_text(config, candidate)
            break
        except ProbeIOError as e:
            last_error = e
    if text is None:
        raise last_error

    os_release = _parse_os_release(text)
    name = os_release.get("PRETTY_NAME") or os_release.get("NAME")
    if not name:
        raise ProbeParseError("os-release has neither PRETTY_NAME nor NAME")
    return name


def hostname(config: Optional[ProbeConfig] = None) -> str:
    config = _config(config)
    if config.constrained:
        return _command_output(config, ["hostname"]) or "N/A (could not run `hostname`)"
    return _one_line(_read_text(config, "/etc/hostname"))


def env(var: str, config: Optional[ProbeConfig] = None) -> str:
    """Value of $var.  Termux has no $USER, so it is asked of `whoami` there."""
    config = _config(config)
    if config.constrained and var == "USER":
        user = _command_output(config, ["whoami"])
        if user:
            return user
    value = os.environ.get(var)
    if value is None:
        return f"N/A (could not read ${var}, are you sure it's set?)"
    return value


def _desktop_environment() -> Optional[str]:
    de = os.environ.get("XDG_CURRENT_DESKTOP", "")
    if de:
        # e.g. "ubuntu:GNOME" → "GNOME"
        return de.split(":")[-1]
    return os.environ.get("DESKTOP_SESSION") or None


def _window_manager(config: ProbeConfig) -> Optional[str]:
    """Scan /proc/*/comm for a known window manager."""
    proc = config.path("/proc")
    try:
        entries = sorted(proc.iterdir(), key=lambda p: p.name)
    except OSError as e:
        logger.debug("cannot list %s: %s", proc, e)
        return None
    for pid_dir in entries:
        if not pid_dir.name.isdigit():
            continue
        try:
            comm = (pid_dir / "comm").read_text(encoding="utf-8", errors="replace").strip()
        except (PermissionError, FileNotFoundError, OSError):
            continue
        if comm in _WINDOW_MANAGERS:
            return _WINDOW_MANAGERS[comm]
    return None


def environment(config: Optional[ProbeConfig] = None) -> str:
    """Desktop environment, else the running window manager."""
    config = _config(config)
    return (
        _desktop_environment()
        or _window_manager(config)
        or "N/A (could not determine the desktop environment or window manager)"
    )


def _tag(song: Dict, key: str) -> str:
    value = song.get(key) or "N/A"
    # repeated tags come back as lists
    if isinstance(value, list):
        value = ", ".join(value)
    return value


def _mpd_now_playing(config: ProbeConfig) -> str:
    host, port = parse_mpd_address(config.mpd_address)
    client = MPDClient()
    client.timeout = config.command_timeout
    try:
        client.connect(host, port)
        try:
            song = client.currentsong()
        finally:
            client.disconnect()
    except (MPDError, OSError) as e:
        logger.debug("mpd at %s: %s", config.mpd_address, e)
        return f"N/A (could not reach mpd at {config.mpd_address})"
    if not song:
        return "N/A (mpd is not playing anything)"
    return (
        f"{_tag(song, 'artist')} - {_tag(song, 'album')} ({_tag(song, 'date')})"
        f" - {_tag(song, 'title')}"
    )


def music(config: Optional[ProbeConfig] = None) -> str:
    """Now playing, from mpd or playerctl when one is configured."""
    config = _config(config)
    if config.music_player == "mpd":
        return _mpd_now_playing(config)
    if config.music_player != "playerctl":
        return MUSIC_DISABLED
    args = ["playerctl", "metadata", "-f", "{{artist}} - {{album}} - {{title}}"]
    return _command_output(config, args) or "N/A (failed to collect output from `playerctl`)"


def _portage_counts(config: ProbeConfig) -> str:
    world = _read_text(config, "/var/lib/portage/world")
    explicit = len([line for line in world.splitlines() if line.strip()])
    total = len(glob.glob(glob.escape(str(config.path("/var/db/pkg"))) + "/*/*/"))
    return f"{explicit} (explicit), {total} (total)"


def packages(manager: str, config: Optional[ProbeConfig] = None) -> str:
    """Number of packages installed through *manager*."""
    config = _config(config)
    if manager == "portage":
        return _portage_counts(config)

    args = _PACKAGE_COMMANDS.get(manager)
    if args is None:
        return f"N/A ({manager} is not supported, please file a bug to get it added!)"

    try:
        result = config.run(args)
    except CommandError as e:
        logger.debug("%s", e)
        return f"N/A (could not run `{args[0]}`)"
    if result.exit_code != 0:
        logger.debug("`%s` exited with %d", " ".join(args), result.exit_code)
        return f"N/A (`{args[0]}` exited with status {result.exit_code})"
    lines = result.stdout.decode("utf-8", errors="replace").splitlines()
    count = len([line for line in lines if line.strip()])
    return str(max(count - _HEADER_LINES.get(manager, 0), 0))


# ── Resolver-backed probes ─────────────────────────────────────────────────────

def cpu(config: Optional[ProbeConfig] = None) -> str:
    return resolve_cpu(_config(config))


def gpu(config: Optional[ProbeConfig] = None) -> str:
    return resolve_gpu(_config(config))


def terminal(config: Optional[ProbeConfig] = None) -> str:
    return resolve_terminal(_config(config))


# ── Aggregation ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Outcome:
    """One probe's result: a value or the error that stopped it."""

    name: str
    value: Optional[str] = None
    error: Optional[ProbeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def text(self) -> str:
        if self.ok:
            return self.value
        return f"N/A ({self.error})"


# Display label → probe taking only a config
PROBES: Dict[str, Callable[[Optional[ProbeConfig]], str]] = {
    "distro": distro,
    "device": device,
    "hostname": hostname,
    "user": lambda config=None: env("USER", config),
    "kernel": kernel,
    "uptime": uptime,
    "environment": environment,
    "terminal": terminal,
    "cpu": cpu,
    "temp": temp,
    "gpu": gpu,
    "memory": memory,
    "packages": lambda config=None: packages("dpkg", config),
    "music": music,
}


def collect(config: Optional[ProbeConfig] = None, names: Optional[Iterable[str]] = None) -> Dict[str, Outcome]:
    """Run probes in order; a failing probe is recorded, never raised."""
    config = _config(config)
    results: Dict[str, Outcome] = {}
    for probe_name in (names if names is not None else PROBES):
        probe = PROBES[probe_name]
        try:
            results[probe_name] = Outcome(probe_name, value=probe(config))
        except ProbeError as e:
            logger.debug("probe %s failed: %s", probe_name, e)
            results[probe_name] = Outcome(probe_name, error=e)
    return results


def main():
    """Dump every probe"""
    logging.basicConfig(level=os.environ.get("HOSTPROBE_LOG_LEVEL", "WARNING").upper())
    config = get_config()

    table = Table(show_header=False, box=None)
    table.add_column(style="#E95420 bold")
    table.add_column()
    for probe_name, outcome in collect(config).items():
        table.add_row(probe_name, outcome.text, style=None if outcome.ok else "dim")

    console.print(f"\n🔍 Host probes ({config.mode.value}):", style="#E95420 bold")
    console.print(table)


if __name__ == "__main__":
    main()
