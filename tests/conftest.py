"""Shared pytest fixtures: a fake host root and a scripted command runner."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from probe_config import CommandResult, PlatformMode, ProbeConfig  # noqa: E402
from probe_errors import CommandError  # noqa: E402


class FakeRunner:
    """Answers commands from a table; unknown commands behave as not installed."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def __call__(self, args, timeout):
        key = tuple(args)
        self.calls.append(key)
        if key not in self.responses:
            raise CommandError(args, "No such file or directory")
        response = self.responses[key]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, CommandResult):
            return response
        return CommandResult(0, response.encode() if isinstance(response, str) else response)


class FakeRoot:
    """A temporary directory laid out like a host filesystem."""

    def __init__(self, path: Path):
        self.path = path

    def write(self, absolute: str, content) -> Path:
        target = self.path / absolute.lstrip("/")
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content)
        return target

    def process(self, pid: int, name: str, ppid: int) -> None:
        self.write(
            f"/proc/{pid}/status",
            f"Name:\t{name}\nUmask:\t0022\nState:\tS (sleeping)\n"
            f"Tgid:\t{pid}\nNgid:\t0\nPid:\t{pid}\nPPid:\t{ppid}\n",
        )


@pytest.fixture
def root(tmp_path) -> FakeRoot:
    return FakeRoot(tmp_path)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def make_config(root, runner):
    def _make(**overrides) -> ProbeConfig:
        options = {"mode": PlatformMode.NATIVE, "root": root.path, "runner": runner}
        options.update(overrides)
        return ProbeConfig(**options)
    return _make
