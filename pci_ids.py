"""
GPU identity via the PCI ID database.

card0's sysfs node only exposes numeric ids ("0x10de\\n").  Names come from
pci.ids, a flat registry with tens of thousands of lines:

    10de  NVIDIA Corporation          ← vendor, unindented
    \\t1b80  GP104 [GeForce GTX 1080]  ← device, one tab
    \\t\\t1043 8591  ...               ← subsystem, two tabs (ignored)

The file is scanned once, forward only: first to the vendor line, then on
through that vendor's indented block for the device line.
"""

import logging
from typing import BinaryIO, Callable, Optional

from probe_config import ProbeConfig
from probe_errors import ProbeIOError, ProbeParseError

logger = logging.getLogger(__name__)

PCI_IDS_PATHS = (
    "/usr/share/hwdata/pci.ids",
    "/usr/share/misc/pci.ids",
    "/usr/share/pci.ids",
)

GPU_VENDOR_PATH = "/sys/class/drm/card0/device/vendor"
GPU_DEVICE_PATH = "/sys/class/drm/card0/device/device"


def open_database(config: ProbeConfig) -> Optional[BinaryIO]:
    """Open the first readable pci.ids candidate in binary mode, or return None."""
    for candidate in PCI_IDS_PATHS:
        path = config.path(candidate)
        try:
            return open(path, "rb")
        except OSError:
            continue
    logger.debug("no pci.ids database found under %s", config.root)
    return None


def find_line(handle: BinaryIO, predicate: Callable[[bytes], bool]) -> Optional[bytes]:
    """
    Return the first raw line from the current position that satisfies
    *predicate*, leaving the handle just past it.  None at EOF.
    """
    for line in iter(handle.readline, b""):
        if predicate(line):
            return line
    return None


def parse_sysfs_id(raw: bytes) -> bytes:
    """b"0x10de\\n" → b"10de"."""
    value = raw.strip()
    digits = value[2:]
    if not value.startswith(b"0x") or len(digits) != 4:
        raise ProbeParseError(f"malformed PCI id {raw!r}")
    try:
        int(digits, 16)
    except ValueError as e:
        raise ProbeParseError(f"malformed PCI id {raw!r}") from e
    return digits


def _entry_name(line: bytes) -> bytes:
    # "10de  NVIDIA Corporation\n" / "\t1b80  GP104\n" → the name part
    return line.strip()[4:].strip()


def lookup(handle: BinaryIO, vendor_id: bytes, device_id: bytes):
    """
    Look up a vendor/device pair.  Returns (vendor_name, device_name);
    either may be None when it was not found.
    """
    vendor_line = find_line(handle, lambda line: line[:4] == vendor_id)
    if vendor_line is None:
        return None, None
    vendor_name = _entry_name(vendor_line)

    # Stop at the first unindented line: that is the next vendor block.
    device_line = find_line(
        handle,
        lambda line: not line.startswith(b"\t") or line[1:5] == device_id,
    )
    device_name = None
    if device_line is not None and device_line.startswith(b"\t"):
        device_name = _entry_name(device_line)
    return vendor_name, device_name


def _read_raw(config: ProbeConfig, absolute: str) -> bytes:
    path = config.path(absolute)
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise ProbeIOError(path, e.strerror or str(e)) from e


def resolve_gpu(config: ProbeConfig) -> str:
    """Return "<vendor> <device>", named where pci.ids knows them, raw hex otherwise."""
    raw_vendor = _read_raw(config, GPU_VENDOR_PATH)
    raw_device = _read_raw(config, GPU_DEVICE_PATH)
    vendor = raw_vendor.strip()
    device = raw_device.strip()

    db = open_database(config)
    if db is not None:
        with db:
            vendor_name, device_name = lookup(
                db, parse_sysfs_id(raw_vendor), parse_sysfs_id(raw_device)
            )
        if vendor_name:
            vendor = vendor_name
        if device_name:
            device = device_name
        if vendor_name is None:
            logger.debug("vendor %s not in pci.ids", raw_vendor.strip())

    return b" ".join((vendor, device)).decode("utf-8", errors="replace")
