from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

import pytest

from detect_host_facts import HostProbe


class FakeRunner:
    """Scripted command runner. Outputs are keyed by the space-joined command line."""

    def __init__(self):
        self.commands: Set[str] = set()
        self.outputs: Dict[str, str] = {}
        self.calls: List[str] = []

    def which(self, name: str) -> Optional[str]:
        return f'/usr/bin/{name}' if name in self.commands else None

    def run(self, args: Sequence[str]) -> Optional[str]:
        command_line = ' '.join(args)
        self.calls.append(command_line)
        if args[0] not in self.commands:
            return None
        return self.outputs.get(command_line)


class FakeHost:
    """Builds a fake host: files below a temporary root, an environment and scripted commands."""

    def __init__(self, root: Path):
        self.root = root
        self.environ: Dict[str, str] = {}
        self.runner = FakeRunner()

    def file(self, path: str, content: str = '') -> 'FakeHost':
        target = self.root / path.lstrip('/')
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding='utf-8')
        return self

    def dir(self, path: str) -> 'FakeHost':
        (self.root / path.lstrip('/')).mkdir(parents=True, exist_ok=True)
        return self

    def command(self, command_line: str, output: Optional[str] = None) -> 'FakeHost':
        self.runner.commands.add(command_line.split()[0])
        if output is not None:
            self.runner.outputs[command_line] = output
        return self

    def env(self, name: str, value: str) -> 'FakeHost':
        self.environ[name] = value
        return self

    @property
    def probe(self) -> HostProbe:
        return HostProbe(runner=self.runner, environ=self.environ, root=str(self.root))


class RecordingProbe(HostProbe):
    """HostProbe that records every file and environment lookup."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.lookups: List[str] = []

    def is_file(self, path: str) -> bool:
        self.lookups.append(f'is_file {path}')
        return super().is_file(path)

    def is_dir(self, path: str) -> bool:
        self.lookups.append(f'is_dir {path}')
        return super().is_dir(path)

    def file_contains(self, path: str, pattern: str, ignore_case: bool = False) -> bool:
        self.lookups.append(f'file_contains {path} {pattern}')
        return super().file_contains(path, pattern, ignore_case)

    def env(self, name: str) -> Optional[str]:
        self.lookups.append(f'env {name}')
        return super().env(name)

    def has_command(self, name: str) -> bool:
        self.lookups.append(f'has_command {name}')
        return super().has_command(name)


@pytest.fixture
def host(tmp_path):
    return FakeHost(tmp_path)


@pytest.fixture
def recording_probe(host):
    def make() -> RecordingProbe:
        return RecordingProbe(runner=host.runner, environ=host.environ, root=str(host.root))
    return make


@pytest.fixture
def linux_host(host):
    """A Ubuntu desktop host running GNOME on x86_64."""
    host.command('uname -s', 'Linux')
    host.command('uname -m', 'x86_64')
    host.command('uname -r', '6.5.0-35-generic')
    host.file('/etc/os-release', 'NAME="Ubuntu"\nVERSION_ID="22.04"\nVERSION="22.04.4 LTS (Jammy Jellyfish)"\n')
    host.env('XDG_CURRENT_DESKTOP', 'GNOME')
    return host
