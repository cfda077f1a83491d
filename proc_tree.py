"""
Process ancestry and terminal emulator detection.

The terminal is found by walking /proc/<pid>/status upward from this
process: shells and multiplexer servers are stepped over, and the first
process that looks like a terminal emulator wins.  Everything is read fresh
from /proc on each call.
"""

import logging
import os
from typing import NamedTuple, Optional, TextIO

from probe_config import ProbeConfig
from probe_errors import ProbeIOError

logger = logging.getLogger(__name__)

TERMINAL_NOT_FOUND = "N/A (could not determine the terminal, this could be an issue of using tmux)"

# /proc/<pid>/status truncates Name: to 15 characters.
WRAPPER_NAMES = frozenset({
    "sh", "bash", "zsh", "fish", "dash", "ksh", "mksh", "tcsh", "csh",
    "nu", "elvish", "xonsh", "ion", "login", "sudo", "doas", "su",
    "tmux", "tmux: server", "tmux: client", "screen", "zellij", "byobu",
})

TERMINAL_NAMES = frozenset({
    "xterm", "uxterm", "urxvt", "urxvtd", "rxvt", "st", "alacritty", "kitty",
    "foot", "footclient", "wezterm-gui", "konsole", "gnome-terminal-",
    "gnome-terminal", "xfce4-terminal", "mate-terminal", "lxterminal",
    "qterminal", "tilix", "terminator", "termite", "sakura", "terminology",
    "yakuake", "guake", "tilda", "hyper", "cool-retro-term", "kgx",
    "ptyxis", "ptyxis-agent", "contour", "blackbox", "deepin-terminal",
    "eterm", "aterm", "cosmic-term", "ghostty", "com.termux",
})

INIT_NAMES = frozenset({"systemd", "init", "launchd"})

# Deep enough for any real shell stack; stops a corrupt /proc from looping.
MAX_HOPS = 64


class ProcessNode(NamedTuple):
    pid: int
    parent_pid: int
    name: str


def _field(handle: TextIO, label: str) -> str:
    for line in handle:
        if line.startswith(label):
            return line[len(label):]
    return ""


def ppid(handle: TextIO) -> str:
    """Raw PPid: value from an open status file, "" if the field is absent."""
    return _field(handle, "PPid:")


def _status_path(config: ProbeConfig, pid):
    return config.path(f"/proc/{pid}/status")


def name(pid, config: ProbeConfig) -> str:
    """Raw Name: value of *pid*.  Raises OSError if the process is gone."""
    with open(_status_path(config, pid), "r", encoding="utf-8", errors="replace") as f:
        return _field(f, "Name:")


def read_node(pid: int, config: ProbeConfig) -> ProcessNode:
    """Read one process entry.  Raises OSError if it cannot be read."""
    node_name = parent = ""
    with open(_status_path(config, pid), "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            if line.startswith("Name:"):
                node_name = line[len("Name:"):].strip()
            elif line.startswith("PPid:"):
                parent = line[len("PPid:"):].strip()
            if node_name and parent:
                break
    return ProcessNode(pid, int(parent) if parent.isdigit() else 0, node_name)


def _parent_of(pid: int, config: ProbeConfig) -> Optional[ProcessNode]:
    """The parent's node, or None when the chain ends or cannot be read."""
    try:
        node = read_node(pid, config)
        if node.parent_pid <= 1:
            return None
        return read_node(node.parent_pid, config)
    except OSError as e:
        logger.debug("ancestry walk stopped at pid %s: %s", pid, e)
        return None


def _usable(node: Optional[ProcessNode]) -> bool:
    return node is not None and bool(node.name) and node.name not in INIT_NAMES


def _single_hop(start_pid: int, config: ProbeConfig) -> Optional[str]:
    parent = _parent_of(start_pid, config)
    if not _usable(parent):
        return None
    if parent.name not in WRAPPER_NAMES:
        return parent.name
    grandparent = _parent_of(parent.pid, config)
    if not _usable(grandparent):
        return None
    return grandparent.name


def _full_walk(start_pid: int, config: ProbeConfig) -> Optional[str]:
    pid = start_pid
    for _ in range(MAX_HOPS):
        node = _parent_of(pid, config)
        if not _usable(node):
            return None
        if node.name in TERMINAL_NAMES:
            return node.name
        pid = node.pid
    logger.debug("ancestry walk gave up after %d hops", MAX_HOPS)
    return None


def resolve_terminal(config: ProbeConfig, start_pid: Optional[int] = None) -> str:
    """
    Name of the terminal emulator hosting *start_pid* (default: this process).

    single  walk: parent, or grandparent when the parent is a shell/multiplexer
    full    walk: first known terminal emulator on the way up to init
    """
    if start_pid is None:
        start_pid = os.getpid()

    status = _status_path(config, start_pid)
    try:
        with open(status, "r", encoding="utf-8", errors="replace") as f:
            raw_parent = ppid(f).strip()
    except OSError as e:
        raise ProbeIOError(status, e.strerror or str(e)) from e
    if not raw_parent.isdigit():
        logger.debug("no PPid field in %s", status)
        return TERMINAL_NOT_FOUND

    if config.terminal_walk == "full":
        found = _full_walk(start_pid, config)
    else:
        found = _single_hop(start_pid, config)
    if not found:
        return TERMINAL_NOT_FOUND
    return found.strip().replace("\n", "")
