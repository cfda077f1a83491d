"""
CPU model line from /proc/cpuinfo.

cpuinfo has no key that is present on every architecture, so the model line
is looked up by label first ("model name") and, failing that, by position:
index 1 on single-board ARM layouts (Raspberry Pi, Android), index 4 on x86
where it is the first core's model name.
"""

import logging
from typing import List

from probe_config import ProbeConfig
from probe_errors import ProbeIOError, ProbeParseError

logger = logging.getLogger(__name__)

CPUINFO_PATH = "/proc/cpuinfo"
DEVICE_MODEL_PATH = "/sys/firmware/devicetree/base/model"

SBC_LINE = 1
GENERIC_LINE = 4


def select_line(config: ProbeConfig) -> int:
    """Positional index of the model line for this host."""
    try:
        model = config.path(DEVICE_MODEL_PATH).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return SBC_LINE if config.constrained else GENERIC_LINE
    return SBC_LINE if model.startswith("Raspberry") else GENERIC_LINE


def field_value(line: str) -> str:
    """"model name\\t: Foo\\n" → "Foo"."""
    _, sep, value = line.partition(":")
    if not sep:
        value = line
    return value.strip().replace("\n", "")


def resolve_cpu(config: ProbeConfig) -> str:
    path = config.path(CPUINFO_PATH)
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines: List[str] = f.readlines()
    except OSError as e:
        raise ProbeIOError(path, e.strerror or str(e)) from e

    for line in lines:
        if line.startswith("model name"):
            return field_value(line)

    index = select_line(config)
    if index >= len(lines):
        raise ProbeParseError(f"{path} has no line {index}")
    logger.debug("no 'model name' in cpuinfo, using line %d", index)
    return field_value(lines[index])
