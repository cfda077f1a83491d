import pytest

from cpu_model import GENERIC_LINE, SBC_LINE, field_value, resolve_cpu, select_line
from probe_config import PlatformMode
from probe_errors import ProbeIOError, ProbeParseError

# No "model name" key anywhere, so only the positional lookup can answer
ANDROID_CPUINFO = (
    "Processor\t: AArch64 Processor rev 4 (aarch64)\n"
    "Hardware\t: Qualcomm Technologies, Inc SM8250\n"
    "processor\t: 0\n"
    "BogoMIPS\t: 38.40\n"
    "Features\t: fp asimd evtstrm aes pmull sha1 sha2 crc32\n"
)

PI_CPUINFO = (
    "processor\t: 0\n"
    "model name\t: ARMv7 Processor rev 3 (v7l)\n"
    "BogoMIPS\t: 108.00\n"
    "Features\t: half thumb fastmult vfp edsp neon\n"
    "CPU implementer\t: 0x41\n"
)

# 64-bit Raspberry Pi OS: no "model name" key, model is at the bottom
PI_AARCH64_CPUINFO = (
    "processor\t: 0\n"
    "BogoMIPS\t: 108.00\n"
    "Features\t: fp asimd evtstrm crc32 cpuid\n"
    "CPU implementer\t: 0x41\n"
    "CPU architecture: 8\n"
    "Hardware\t: BCM2835\n"
    "Model\t\t: Raspberry Pi 4 Model B Rev 1.4\n"
)

X86_CPUINFO = (
    "processor\t: 0\n"
    "vendor_id\t: GenuineIntel\n"
    "cpu family\t: 6\n"
    "model\t\t: 142\n"
    "model name\t: Intel(R) Core(TM) i7-8550U CPU @ 1.80GHz\n"
    "stepping\t: 10\n"
)


class TestSelectLine:

    def test_raspberry_pi_model_file(self, root, make_config):
        root.write("/sys/firmware/devicetree/base/model", "Raspberry Pi 4 Model B Rev 1.4\x00")
        assert select_line(make_config()) == SBC_LINE == 1

    def test_other_devicetree_board(self, root, make_config):
        root.write("/sys/firmware/devicetree/base/model", "Pine64 RockPro64\x00")
        assert select_line(make_config()) == GENERIC_LINE == 4

    def test_no_model_file_native(self, make_config):
        assert select_line(make_config()) == GENERIC_LINE

    def test_no_model_file_constrained(self, make_config):
        assert select_line(make_config(mode=PlatformMode.CONSTRAINED)) == SBC_LINE


class TestResolveCpu:

    def test_raspberry_pi(self, root, make_config):
        root.write("/sys/firmware/devicetree/base/model", "Raspberry Pi 4 Model B\x00")
        root.write("/proc/cpuinfo", PI_CPUINFO)
        assert resolve_cpu(make_config()) == "ARMv7 Processor rev 3 (v7l)"

    def test_raspberry_pi_aarch64_uses_line_one(self, root, make_config):
        root.write("/sys/firmware/devicetree/base/model", "Raspberry Pi 4 Model B Rev 1.4\x00")
        root.write("/proc/cpuinfo", PI_AARCH64_CPUINFO)
        assert resolve_cpu(make_config()) == "108.00"

    def test_other_board_aarch64_uses_line_four(self, root, make_config):
        root.write("/sys/firmware/devicetree/base/model", "Pine64 RockPro64\x00")
        root.write("/proc/cpuinfo", PI_AARCH64_CPUINFO)
        assert resolve_cpu(make_config()) == "8"

    def test_x86_native(self, root, make_config):
        root.write("/proc/cpuinfo", X86_CPUINFO)
        assert resolve_cpu(make_config()) == "Intel(R) Core(TM) i7-8550U CPU @ 1.80GHz"

    def test_positional_fallback_constrained(self, root, make_config):
        root.write("/proc/cpuinfo", ANDROID_CPUINFO)
        config = make_config(mode=PlatformMode.CONSTRAINED)
        assert resolve_cpu(config) == "Qualcomm Technologies, Inc SM8250"

    def test_positional_fallback_native(self, root, make_config):
        root.write("/proc/cpuinfo", ANDROID_CPUINFO)
        assert resolve_cpu(make_config()) == "fp asimd evtstrm aes pmull sha1 sha2 crc32"

    def test_short_cpuinfo(self, root, make_config):
        root.write("/proc/cpuinfo", "processor\t: 0\n")
        with pytest.raises(ProbeParseError):
            resolve_cpu(make_config())

    def test_missing_cpuinfo_is_fatal(self, make_config):
        with pytest.raises(ProbeIOError):
            resolve_cpu(make_config())


@pytest.mark.parametrize("line, expected", [
    ("model name\t: AMD Ryzen 7 5800X 8-Core Processor\n", "AMD Ryzen 7 5800X 8-Core Processor"),
    ("Hardware\t: BCM2835\n", "BCM2835"),
    ("cpu model\t\t: Loongson-3A R4\n", "Loongson-3A R4"),
    ("no separator here\n", "no separator here"),
])
def test_field_value(line, expected):
    assert field_value(line) == expected
