#!/usr/bin/env python3

# -------------------------------------------------------
# Script: detect_host_facts.py
#
# Description:
# This script inspects the machine it runs on and reports, in a fixed order, the container
# environment, the operating system and its version number and name, the Linux distribution,
# the desktop environment, the CPU architecture and the kernel version.
# Every fact is inferred from an ordered list of evidence (marker files, environment variables,
# available commands, file contents). The first piece of evidence that matches wins, and a fact
# that cannot be resolved is reported as "Unknown" instead of aborting the run.
# The script can also be imported; run_detection() returns the collected facts as a record.
#
# Usage:
# ./detect_host_facts.py [options]
#
# Options:
# -v, --verbose               Enable verbose logging (INFO level).
# -vv, --debug                Enable debug logging (DEBUG level).
# -q, --quiet                 Disable console logging.
# -l, --log-level LEVEL       Console log level: none, default, verbose, debug or 0-3.
# -L, --log-file FILE         Append all log messages to the specified file.
# -o, --output FILE           Output the detection results to a specified file (JSON format).
# -F, --format FORMAT         Output format: table, json or env (default: table).
# -t, --timeout SECONDS       Timeout for each external command (default: 2.0).
# -s, --skip-checks           Skip the functional tests run before detection.
# -h, --help                  Show help message and exit.
#
# Environment:
# CONSOLE_LOG_LEVEL           Console log level used when no log level option is given.
# LOG_FILE                    Log file used when --log-file is not given.
#
# Returns:
# Exit code 0 on success, non-zero on failure.
#
# Template: ubuntu22.04
#
# Requirements:
#   - prettytable (install via: pip install prettytable==3.12.0)
#
# -------------------------------------------------------
# © 2025 Hendrik Buchwald. All rights reserved.
# -------------------------------------------------------

import argparse
import atexit
import dataclasses
import fnmatch
import json
import logging
import os
import plistlib
import re
import shlex
import shutil
import signal
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from xml.parsers.expat import ExpatError

from prettytable import PrettyTable

DEFAULT_COMMAND_TIMEOUT = 2.0

# Log level for the final value of each fact, between INFO and WARNING
SYSTEM = 25
logging.addLevelName(SYSTEM, 'SYSTEM')

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

# Console verbosity 0-3 mapped to the lowest level shown
CONSOLE_LOG_LEVELS = {
    0: logging.CRITICAL + 10,
    1: SYSTEM,
    2: logging.INFO,
    3: logging.DEBUG,
}
CONSOLE_LOG_LEVEL_NAMES = {
    'none': 0, 'n': 0,
    'default': 1, 'd': 1,
    'verbose': 2, 'v': 2,
    'debug': 3, 'deb': 3,
}

REQUIRED_COMMANDS = ('uname',)

# Constants for file paths
OS_RELEASE_PATHS = ('/etc/os-release', '/usr/lib/os-release')
PROC_VERSION = '/proc/version'
PROC_1_CGROUP = '/proc/1/cgroup'
PROC_SELF_STATUS = '/proc/self/status'
DOCKER_ENV_FILE = '/.dockerenv'
PODMAN_ENV_FILE = '/run/.containerenv'
ANDROID_BUILD_PROP = '/system/build.prop'
IOS_MOBILE_DIR = '/var/mobile'
MACOS_CORE_SERVICES = '/System/Library/CoreServices'
MACOS_SYSTEM_VERSION_PLIST = '/System/Library/CoreServices/SystemVersion.plist'
SOLARIS_RELEASE = '/etc/release'

VERSION_PATTERN = r'([0-9]+(?:\.[0-9]+)+)'


class ContainerType(Enum):
    """Enum representing supported container environments."""
    NONE = 'None'
    DOCKER = 'Docker'
    PODMAN = 'Podman'
    KUBERNETES = 'Kubernetes'
    LXC = 'LXC'
    OPENVZ = 'OpenVZ'
    GENERIC = 'Generic Container'


class OsFamily(Enum):
    """Enum representing supported operating system families."""
    LINUX = 'Linux'
    MACOS = 'MacOS'
    WINDOWS = 'Windows'
    FREEBSD = 'FreeBSD'
    OPENBSD = 'OpenBSD'
    NETBSD = 'NetBSD'
    DRAGONFLYBSD = 'DragonFlyBSD'
    SOLARIS = 'Solaris'
    AIX = 'AIX'
    ANDROID = 'Android'
    IOS = 'iOS'
    WSL = 'WSL'
    CYGWIN = 'Cygwin'
    MINGW = 'MinGW'
    UNKNOWN = 'Unknown'


class ArchitectureType(Enum):
    """Enum representing supported CPU architecture categories."""
    X86_64 = 'x86_64'
    X86_32 = 'x86_32'
    ARM32 = 'ARM32'
    ARM64 = 'ARM64'
    PPC64LE = 'PPC64LE'
    PPC = 'PPC'
    RISCV64 = 'RISCV64'
    UNKNOWN = 'Unknown'


ARCHITECTURE_LABELS = {
    ArchitectureType.X86_64: 'x86_64 (64-bit)',
    ArchitectureType.X86_32: 'x86 (32-bit)',
    ArchitectureType.ARM32: 'ARM (32-bit)',
    ArchitectureType.ARM64: 'ARM (64-bit)',
    ArchitectureType.PPC64LE: 'PowerPC 64-bit (little-endian)',
    ArchitectureType.PPC: 'PowerPC',
    ArchitectureType.RISCV64: 'RISC-V (64-bit)',
    ArchitectureType.UNKNOWN: 'Unknown Architecture',
}


@dataclass(frozen=True)
class Architecture:
    """Data class for storing the CPU architecture with its platform qualifier and raw machine string."""
    type: ArchitectureType = ArchitectureType.UNKNOWN
    qualifier: Optional[str] = None
    raw: str = ''

    @property
    def label(self) -> str:
        """Human readable name, e.g. 'ARM (64-bit)' or 'Android (ARM)'."""
        if self.type == ArchitectureType.UNKNOWN or not self.qualifier:
            return ARCHITECTURE_LABELS[self.type]
        family = 'PowerPC' if self.type == ArchitectureType.PPC else 'ARM'
        return f'{self.qualifier} ({family})'


@dataclass(frozen=True)
class HostFacts:
    """
    Data class for storing the facts of one detection run.

    Absent optional values are None. The record is frozen; detectors return
    an updated copy instead of modifying it.
    """
    container: ContainerType = ContainerType.NONE
    os_family: OsFamily = OsFamily.UNKNOWN
    os_version_number: Optional[str] = None
    os_version_name: Optional[str] = None
    distro_name: Optional[str] = None
    desktop_env: Optional[str] = None
    architecture: Architecture = field(default_factory=Architecture)
    kernel_version: Optional[str] = None

    @property
    def in_container(self) -> bool:
        return self.container != ContainerType.NONE

    def to_dict(self) -> Dict[str, Any]:
        """Returns the facts under their stable, caller-facing names."""
        return {
            'container': self.container.value,
            'in_container': self.in_container,
            'os_family': self.os_family.value,
            'os_version_number': self.os_version_number,
            'os_version_name': self.os_version_name,
            'distro_name': self.distro_name,
            'desktop_env': self.desktop_env,
            'architecture': self.architecture.label,
            'architecture_type': self.architecture.type.value,
            'architecture_raw': self.architecture.raw or None,
            'kernel_version': self.kernel_version,
        }

    def to_env(self) -> List[str]:
        """Returns the facts as shell variable assignments suitable for eval."""
        lines = []
        for key, value in self.to_dict().items():
            if isinstance(value, bool):
                value = 'true' if value else 'false'
            elif value is None:
                value = ''
            lines.append(f'{key.upper()}={shlex.quote(str(value))}')
        return lines

    def summary_rows(self) -> List[Tuple[str, str]]:
        """Returns (label, value) pairs in detection order for display."""
        rows = [
            ('Container Environment', self.container.value),
            ('Operating System', self.os_family.value),
            ('Version Number', self.os_version_number or 'Unknown'),
            ('Version Name', self.os_version_name or 'Unknown'),
        ]
        if self.os_family == OsFamily.LINUX:
            rows.append(('Linux Distribution', self.distro_name or 'Unknown'))
        rows.extend([
            ('Desktop Environment', self.desktop_env or 'Unknown'),
            ('Architecture', self.architecture.label),
            ('Kernel', self.kernel_version or 'Unknown'),
        ])
        return rows


# -------------------------------------------------------
# Evidence probes
# -------------------------------------------------------


class CommandRunner:
    """Runs external commands, reporting any failure as absent output."""

    def __init__(self, timeout: float = DEFAULT_COMMAND_TIMEOUT):
        self.timeout = timeout

    def which(self, name: str) -> Optional[str]:
        """Returns the path of the command, or None if it is not available."""
        return shutil.which(name)

    def run(self, args: Sequence[str]) -> Optional[str]:
        """
        Runs the command and returns its stripped standard output.

        A command that is not available is never started. Non-zero exit codes,
        timeouts, OS errors and empty output all yield None.
        """
        if not args:
            return None
        command_line = ' '.join(args)
        if self.which(args[0]) is None:
            logging.debug(f"Command '{args[0]}' is not available.")
            return None
        try:
            result = subprocess.run(
                list(args),
                capture_output=True,
                text=True,
                errors='replace',
                timeout=self.timeout,
                check=False
            )
        except subprocess.TimeoutExpired:
            logging.debug(f"Command '{command_line}' timed out after {self.timeout} seconds.")
            return None
        except (OSError, subprocess.SubprocessError) as e:
            logging.debug(f"Error executing '{command_line}': {e}")
            return None

        if result.returncode != 0:
            logging.debug(f"Command '{command_line}' exited with code {result.returncode}.")
            return None

        # Windows tools may emit CRLF line endings or UTF-16 padding
        output = result.stdout.replace('\r', '').replace('\x00', '').strip()
        logging.debug(f"Output of '{command_line}': {output!r}")
        return output or None


class HostProbe:
    """
    Fallible accessors over the host: files, environment variables and commands.

    All absolute paths are resolved below `root`, so a fake filesystem can be
    laid out in a directory. No method raises; failures are reported as absent.
    """

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        environ: Optional[Mapping[str, str]] = None,
        root: str = '/'
    ):
        self.runner = runner if runner is not None else CommandRunner()
        self.environ = os.environ if environ is None else environ
        self.root = root

    def _resolve(self, path: str) -> str:
        if self.root in ('', '/'):
            return path
        return os.path.join(self.root, path.lstrip('/'))

    def exists(self, path: str) -> bool:
        return os.path.exists(self._resolve(path))

    def is_file(self, path: str) -> bool:
        return os.path.isfile(self._resolve(path))

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(self._resolve(path))

    def read_file(self, path: str) -> Optional[str]:
        """Reads a text file, returning None if it is missing or unreadable."""
        try:
            with open(self._resolve(path), 'r', encoding='utf-8', errors='replace') as f:
                return f.read()
        except OSError as e:
            logging.debug(f"Unable to read {path}: {e}")
        return None

    def file_contains(self, path: str, pattern: str, ignore_case: bool = False) -> bool:
        """Checks whether the file content matches a regular expression."""
        content = self.read_file(path)
        if content is None:
            return False
        flags = re.IGNORECASE if ignore_case else 0
        return re.search(pattern, content, flags) is not None

    def env(self, name: str) -> Optional[str]:
        """Reads an environment variable; unset and blank values are absent."""
        value = self.environ.get(name)
        if value is None:
            return None
        return value.strip() or None

    def has_command(self, name: str) -> bool:
        return self.runner.which(name) is not None

    def command_output(self, args: Sequence[str]) -> Optional[str]:
        return self.runner.run(args)

    def command_match(self, args: Sequence[str], pattern: str, flags: int = 0) -> Optional[str]:
        """Runs a command and extracts a value from its output via a pattern."""
        return extract_version(self.command_output(args), pattern, flags)


# -------------------------------------------------------
# Text parsers
# -------------------------------------------------------


def first_line(text: Optional[str]) -> Optional[str]:
    """Returns the first non-blank line of the text, stripped."""
    if not text:
        return None
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return None


def parse_os_release(text: str) -> Dict[str, str]:
    """Parses os-release style KEY=value lines into a dictionary with upper-case keys."""
    os_release = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, value = line.split('=', 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
            value = value[1:-1]
        os_release[key.strip().upper()] = value
    return os_release


def parse_build_prop(text: Optional[str], key: str) -> Optional[str]:
    """Returns the value of a key from an Android build.prop file."""
    if not text:
        return None
    for line in text.splitlines():
        if '=' not in line or line.lstrip().startswith('#'):
            continue
        name, value = line.split('=', 1)
        if name.strip() == key:
            return value.strip() or None
    return None


def extract_version(text: Optional[str], pattern: str, flags: int = 0) -> Optional[str]:
    """
    Searches text for a pattern and returns the first capture group,
    or the whole match if the pattern has no groups.
    """
    if not text:
        return None
    match = re.search(pattern, text, flags | re.MULTILINE)
    if not match:
        return None
    value = match.group(1) if match.groups() else match.group(0)
    return value.strip() or None


def parse_plist_version(text: Optional[str]) -> Optional[str]:
    """Extracts ProductVersion from the content of a SystemVersion.plist."""
    if not text:
        return None
    try:
        data = plistlib.loads(text.encode('utf-8'))
    except (plistlib.InvalidFileException, ExpatError, ValueError) as e:
        logging.debug(f"Unable to parse property list: {e}")
        return None
    version = data.get('ProductVersion') if isinstance(data, dict) else None
    return version if isinstance(version, str) and version else None


def parse_windows_ver(text: Optional[str]) -> Optional[str]:
    """Parses the output of 'ver', e.g. 'Microsoft Windows [Version 10.0.19045.4291]'."""
    return extract_version(text, r'\[Version\s+' + VERSION_PATTERN + r'\]', re.IGNORECASE)


def parse_wmic_version(text: Optional[str]) -> Optional[str]:
    """Parses the output of 'wmic os get Version', which is a header line followed by the value."""
    return extract_version(text, r'^\s*' + VERSION_PATTERN + r'\s*$')


def read_os_release(probe: HostProbe) -> Dict[str, str]:
    """Reads the first available os-release file."""
    for path in OS_RELEASE_PATHS:
        content = probe.read_file(path)
        if content is not None:
            os_release = parse_os_release(content)
            logging.debug(f"Parsed {path}: {os_release}")
            return os_release
    return {}


# -------------------------------------------------------
# Signal normalizer
# -------------------------------------------------------

# Kernel names as reported by 'uname -s'
KERNEL_NAMES = (
    ('Linux', OsFamily.LINUX),
    ('Darwin', OsFamily.MACOS),
    ('FreeBSD', OsFamily.FREEBSD),
    ('OpenBSD', OsFamily.OPENBSD),
    ('NetBSD', OsFamily.NETBSD),
    ('DragonFly*', OsFamily.DRAGONFLYBSD),
    ('SunOS', OsFamily.SOLARIS),
    ('AIX', OsFamily.AIX),
    ('CYGWIN_NT*', OsFamily.CYGWIN),
    ('MINGW*', OsFamily.MINGW),
    ('MSYS_NT*', OsFamily.MINGW),
    ('Windows_NT', OsFamily.WINDOWS),
)

# Machine hardware names as reported by 'uname -m', matched case-insensitively
MACHINE_NAMES = (
    ('x86_64', ArchitectureType.X86_64),
    ('amd64', ArchitectureType.X86_64),
    ('i[3-6]86', ArchitectureType.X86_32),
    ('x86', ArchitectureType.X86_32),
    ('armv6l', ArchitectureType.ARM32),
    ('armv7l', ArchitectureType.ARM32),
    ('aarch64', ArchitectureType.ARM64),
    ('arm64', ArchitectureType.ARM64),
    ('ppc64le', ArchitectureType.PPC64LE),
    ('riscv64', ArchitectureType.RISCV64),
    ('rs6000', ArchitectureType.PPC),
    ('powerpc', ArchitectureType.PPC),
)


def normalize_kernel_name(raw: Optional[str]) -> OsFamily:
    """Maps a raw kernel name to an OS family; unrecognized names map to UNKNOWN with a warning."""
    name = (raw or '').strip()
    for pattern, family in KERNEL_NAMES:
        if fnmatch.fnmatchcase(name, pattern):
            return family
    logging.warning(f"Unrecognized kernel name: {name or '<empty>'}")
    return OsFamily.UNKNOWN


def _arm_type(machine: str) -> ArchitectureType:
    return ArchitectureType.ARM64 if '64' in machine else ArchitectureType.ARM32


def normalize_architecture(raw: Optional[str], os_family: OsFamily) -> Architecture:
    """
    Maps a raw machine hardware name to an architecture category.

    The raw string alone cannot tell an iPhone from an Android phone, so ARM
    machines on iOS and Android carry the OS family as qualifier. AIX only
    runs on POWER, whatever its machine identifier looks like.
    """
    machine = (raw or '').strip()
    lowered = machine.lower()

    if os_family == OsFamily.AIX:
        return Architecture(ArchitectureType.PPC, 'AIX', machine)

    is_arm = lowered.startswith(('arm', 'aarch'))
    if is_arm and os_family in (OsFamily.IOS, OsFamily.ANDROID):
        return Architecture(_arm_type(lowered), os_family.value, machine)

    for pattern, arch_type in MACHINE_NAMES:
        if fnmatch.fnmatchcase(lowered, pattern):
            # rs6000 is the machine name AIX reports
            qualifier = 'AIX' if pattern == 'rs6000' else None
            return Architecture(arch_type, qualifier, machine)

    if is_arm:
        return Architecture(_arm_type(lowered), None, machine)

    logging.warning(f"Unknown architecture detected: {machine or '<empty>'}")
    return Architecture(ArchitectureType.UNKNOWN, None, machine)


# -------------------------------------------------------
# Version name tables
# -------------------------------------------------------

MACOS_VERSION_NAMES = (
    ('26.*', 'Tahoe'),
    ('15.*', 'Sequoia'),
    ('14.*', 'Sonoma'),
    ('13.*', 'Ventura'),
    ('12.*', 'Monterey'),
    ('11.*', 'Big Sur'),
    ('10.15*', 'Catalina'),
    ('10.14*', 'Mojave'),
    ('10.13*', 'High Sierra'),
    ('10.12*', 'Sierra'),
    ('10.11*', 'El Capitan'),
    ('10.10*', 'Yosemite'),
)

WINDOWS_VERSION_NAMES = (
    # Windows 11 still reports 10.0 and is told apart by its build number
    ('10.0.2[2-9][0-9][0-9][0-9]*', 'Windows 11'),
    ('11.0.*', 'Windows 11'),
    ('10.0.*', 'Windows 10'),
    ('6.3.*', 'Windows 8.1'),
    ('6.2.*', 'Windows 8'),
    ('6.1.*', 'Windows 7'),
    ('6.0.*', 'Windows Vista'),
    ('5.1.*', 'Windows XP'),
    ('5.0.*', 'Windows 2000'),
    ('4.0.*', 'Windows NT 4.0'),
    ('3.51.*', 'Windows NT 3.51'),
    ('3.5.*', 'Windows NT 3.5'),
    ('3.1.*', 'Windows 3.1'),
    ('2.0.*', 'Windows 2.0'),
    ('1.0.*', 'Windows 1.0'),
)

SOLARIS_VERSION_NAMES = (
    ('11.*', 'Oracle Solaris 11'),
    ('10.*', 'Oracle Solaris 10'),
    ('5.11', 'SunOS 5.11'),
    ('5.10', 'SunOS 5.10'),
    ('5.9', 'SunOS 5.9'),
    ('5.8', 'SunOS 5.8'),
)

ANDROID_VERSION_NAMES = (
    ('16.*', 'Baklava'),
    ('15.*', 'Vanilla Ice Cream'),
    ('14.*', 'Upside Down Cake'),
    ('13.*', 'Tiramisu'),
    ('12.*', 'Snow Cone'),
    ('11.*', 'Red Velvet Cake'),
    ('10.*', 'Quince Tart'),
    ('9.*', 'Pie'),
    ('8.*', 'Oreo'),
    ('7.*', 'Nougat'),
    ('6.*', 'Marshmallow'),
    ('5.*', 'Lollipop'),
    ('4.4*', 'KitKat'),
    ('4.3*', 'Jelly Bean'),
    ('4.2*', 'Jelly Bean'),
    ('4.1*', 'Jelly Bean'),
    ('4.0*', 'Ice Cream Sandwich'),
    ('3.*', 'Honeycomb'),
    ('2.3*', 'Gingerbread'),
    ('2.2*', 'FroYo'),
    ('2.1*', 'Eclair'),
    ('2.0*', 'Eclair'),
    ('1.6', 'Donut'),
    ('1.5', 'Cupcake'),
)

# No Linux table: a version name there depends on the distribution
VERSION_NAMES = {
    OsFamily.MACOS: MACOS_VERSION_NAMES,
    OsFamily.WINDOWS: WINDOWS_VERSION_NAMES,
    OsFamily.SOLARIS: SOLARIS_VERSION_NAMES,
    OsFamily.ANDROID: ANDROID_VERSION_NAMES,
}


def _version_matches(version: str, pattern: str) -> bool:
    # 'X.*' also matches a bare 'X', as Android reports '14' rather than '14.0'
    if pattern.endswith('.*') and version == pattern[:-2]:
        return True
    return fnmatch.fnmatchcase(version, pattern)


def lookup_version_name(os_family: OsFamily, version_number: str) -> Optional[str]:
    """Returns the codename for a version number, or None if the family's table has no match."""
    for pattern, name in VERSION_NAMES.get(os_family, ()):
        if _version_matches(version_number.strip(), pattern):
            return name
    return None


# -------------------------------------------------------
# Detector cascade
# -------------------------------------------------------


@dataclass(frozen=True)
class EvidenceCheck:
    """A named piece of evidence; check() returns the inferred value or None when absent."""
    description: str
    check: Callable[[], Optional[Any]]


def when(description: str, predicate: Callable[[], bool], value: Any) -> EvidenceCheck:
    """Builds an evidence check that yields a fixed value when the predicate holds."""
    return EvidenceCheck(description, lambda: value if predicate() else None)


def first_match(checks: Sequence[EvidenceCheck], subject: str) -> Optional[Any]:
    """Evaluates the checks in order and returns the value of the first one that matches."""
    for evidence in checks:
        value = evidence.check()
        if value is not None:
            shown = value.value if isinstance(value, Enum) else value
            logging.debug(f"{subject}: '{evidence.description}' matched ({shown}).")
            return value
        logging.debug(f"{subject}: '{evidence.description}' did not match.")
    return None


def report(label: str, value: Optional[str]) -> None:
    """Emits the final value of a fact."""
    logging.log(SYSTEM, f"{label}: {value if value else 'Unknown'}")


class BaseDetector(ABC):
    """Abstract base class for fact detectors."""

    stage = 'Detecting...'
    label = 'Fact'

    def __init__(self, probe: HostProbe):
        self.probe = probe

    def applies_to(self, facts: HostFacts) -> bool:
        """Whether the detector runs for the facts collected so far."""
        return True

    @abstractmethod
    def detect(self, facts: HostFacts) -> HostFacts:
        pass


class ContainerDetector(BaseDetector):
    """Detector for container environments. The first matching marker wins."""

    stage = 'Detecting container environment...'
    label = 'Container Environment'

    def detect(self, facts: HostFacts) -> HostFacts:
        probe = self.probe
        checks = [
            when(f'{DOCKER_ENV_FILE} exists',
                 lambda: probe.is_file(DOCKER_ENV_FILE), ContainerType.DOCKER),
            when(f'{PODMAN_ENV_FILE} exists',
                 lambda: probe.is_file(PODMAN_ENV_FILE), ContainerType.PODMAN),
            when(f'libpod in {PROC_1_CGROUP}',
                 lambda: probe.file_contains(PROC_1_CGROUP, 'libpod'), ContainerType.PODMAN),
            when(f'/kubepods in {PROC_1_CGROUP}',
                 lambda: probe.file_contains(PROC_1_CGROUP, '/kubepods'), ContainerType.KUBERNETES),
            when(f'lxc in {PROC_1_CGROUP}',
                 lambda: probe.file_contains(PROC_1_CGROUP, 'lxc'), ContainerType.LXC),
            when(f'VxID in {PROC_SELF_STATUS}',
                 lambda: probe.file_contains(PROC_SELF_STATUS, 'VxID'), ContainerType.OPENVZ),
            when(f'container keyword in {PROC_1_CGROUP}',
                 lambda: probe.file_contains(PROC_1_CGROUP, 'docker|containerd|lxc'), ContainerType.GENERIC),
        ]
        container = first_match(checks, 'Container')
        if container is None:
            container = ContainerType.NONE
        report(self.label, container.value)
        return dataclasses.replace(facts, container=container)


class OsFamilyDetector(BaseDetector):
    """Detector for the operating system family."""

    stage = 'Detecting operating system...'
    label = 'Operating System'

    def detect(self, facts: HostFacts) -> HostFacts:
        kernel_name = self.probe.command_output(['uname', '-s'])
        family = normalize_kernel_name(kernel_name) if kernel_name else OsFamily.UNKNOWN

        # iOS and Android report the same kernel names as macOS and Linux
        if family == OsFamily.MACOS and self.probe.is_dir(IOS_MOBILE_DIR):
            logging.debug(f"Found {IOS_MOBILE_DIR}, refining MacOS to iOS.")
            family = OsFamily.IOS
        elif family == OsFamily.LINUX and self._is_android():
            logging.debug("Found Android build properties, refining Linux to Android.")
            family = OsFamily.ANDROID

        if family == OsFamily.UNKNOWN:
            logging.info("Quick check did not detect a known OS, running detailed checks...")
            family = first_match(self._fallback_checks(), 'Operating system')
            if family is None:
                logging.warning("Unable to detect OS.")
                family = OsFamily.UNKNOWN

        report(self.label, family.value)
        return dataclasses.replace(facts, os_family=family)

    def _is_android(self) -> bool:
        return (self.probe.is_file(ANDROID_BUILD_PROP)
                or self.probe.command_output(['getprop', 'ro.build.version.release']) is not None)

    def _fallback_checks(self) -> List[EvidenceCheck]:
        """Marker checks ordered from the most specific platform to the most generic."""
        probe = self.probe
        return [
            when('Android build properties', self._is_android, OsFamily.ANDROID),
            when(f'microsoft in {PROC_VERSION}',
                 lambda: probe.file_contains(PROC_VERSION, 'microsoft', ignore_case=True), OsFamily.WSL),
            when('WSL_DISTRO_NAME is set', lambda: probe.env('WSL_DISTRO_NAME') is not None, OsFamily.WSL),
            when(f'cygwin in {PROC_VERSION}',
                 lambda: probe.file_contains(PROC_VERSION, 'cygwin', ignore_case=True), OsFamily.CYGWIN),
            when(f'mingw in {PROC_VERSION}',
                 lambda: probe.file_contains(PROC_VERSION, 'mingw', ignore_case=True), OsFamily.MINGW),
            when('MSYSTEM is set', lambda: probe.env('MSYSTEM') is not None, OsFamily.MINGW),
            when('WINDIR is set', lambda: probe.env('WINDIR') is not None, OsFamily.WINDOWS),
            when('OS is Windows_NT', lambda: probe.env('OS') == 'Windows_NT', OsFamily.WINDOWS),
            when(f'{IOS_MOBILE_DIR} exists', lambda: probe.is_dir(IOS_MOBILE_DIR), OsFamily.IOS),
            when(f'{MACOS_CORE_SERVICES} exists', lambda: probe.is_dir(MACOS_CORE_SERVICES), OsFamily.MACOS),
            when('/proc/sys/kernel/ostype is Linux',
                 lambda: first_line(probe.read_file('/proc/sys/kernel/ostype')) == 'Linux', OsFamily.LINUX),
            when(f'linux in {PROC_VERSION}',
                 lambda: probe.file_contains(PROC_VERSION, 'linux', ignore_case=True), OsFamily.LINUX),
            when('/sys/module exists', lambda: probe.is_dir('/sys/module'), OsFamily.LINUX),
            when('/bin/freebsd-version exists', lambda: probe.is_file('/bin/freebsd-version'), OsFamily.FREEBSD),
            when('/etc/netbsd-version exists', lambda: probe.is_file('/etc/netbsd-version'), OsFamily.NETBSD),
            when('/bin/dfbsd-version exists', lambda: probe.is_file('/bin/dfbsd-version'), OsFamily.DRAGONFLYBSD),
            when('/etc/version exists', lambda: probe.is_file('/etc/version'), OsFamily.OPENBSD),
            when(f'{SOLARIS_RELEASE} exists', lambda: probe.is_file(SOLARIS_RELEASE), OsFamily.SOLARIS),
            when('/usr/bin/oslevel exists', lambda: probe.is_file('/usr/bin/oslevel'), OsFamily.AIX),
            when('/etc/vmlinux exists', lambda: probe.is_file('/etc/vmlinux'), OsFamily.AIX),
        ]


class DistroDetector(BaseDetector):
    """Detector for the Linux distribution name."""

    stage = 'Detecting Linux distribution...'
    label = 'Linux Distribution Name'

    def applies_to(self, facts: HostFacts) -> bool:
        return facts.os_family == OsFamily.LINUX

    def detect(self, facts: HostFacts) -> HostFacts:
        probe = self.probe
        checks = [
            EvidenceCheck('NAME in os-release', lambda: read_os_release(probe).get('NAME') or None),
            EvidenceCheck('lsb_release -si', lambda: probe.command_output(['lsb_release', '-si'])),
        ]
        distro = first_match(checks, 'Linux distribution')
        if distro is None:
            logging.warning("Unable to detect Linux Distribution name.")
            distro = 'Unknown'
        report(self.label, distro)
        return dataclasses.replace(facts, distro_name=distro)


class VersionNumberDetector(BaseDetector):
    """Detector for the OS version number, using a strategy list per OS family."""

    stage = 'Detecting version number...'
    label = 'Version Number'

    def detect(self, facts: HostFacts) -> HostFacts:
        strategies = self._strategies().get(facts.os_family)
        if not strategies:
            logging.info(f"Unable to detect version number for {facts.os_family.value}")
            report(self.label, None)
            return dataclasses.replace(facts, os_version_number=None)

        version = first_match(strategies, 'Version number')
        if version is None:
            logging.warning("Unable to detect version number.")
        report(self.label, version)
        return dataclasses.replace(facts, os_version_number=version)

    def _strategies(self) -> Dict[OsFamily, List[EvidenceCheck]]:
        probe = self.probe

        def command(*args: str) -> EvidenceCheck:
            return EvidenceCheck(' '.join(args), lambda: probe.command_output(list(args)))

        def command_match(pattern: str, *args: str, flags: int = 0) -> EvidenceCheck:
            return EvidenceCheck(' '.join(args), lambda: probe.command_match(list(args), pattern, flags))

        def file_line(path: str) -> EvidenceCheck:
            return EvidenceCheck(path, lambda: first_line(probe.read_file(path)))

        def os_release(key: str) -> EvidenceCheck:
            return EvidenceCheck(f'{key} in os-release', lambda: read_os_release(probe).get(key) or None)

        uname_release = command('uname', '-r')
        kern_version = command_match(r'\b([0-9]+\.[0-9]+(?:-[A-Za-z0-9]+)?)', 'sysctl', '-n', 'kern.version')
        macos_plist = EvidenceCheck(
            MACOS_SYSTEM_VERSION_PLIST,
            lambda: parse_plist_version(probe.read_file(MACOS_SYSTEM_VERSION_PLIST))
        )

        return {
            OsFamily.LINUX: [
                os_release('VERSION_ID'),
                os_release('VERSION'),
                command('lsb_release', '-sr'),
                EvidenceCheck('/etc/redhat-release',
                              lambda: extract_version(probe.read_file('/etc/redhat-release'), r'([0-9]+(?:\.[0-9]+)*)')),
                file_line('/etc/debian_version'),
            ],
            OsFamily.MACOS: [
                command('sw_vers', '-productVersion'),
                macos_plist,
            ],
            OsFamily.IOS: [
                command('ideviceinfo', '-k', 'ProductVersion'),
                command('sw_vers', '-productVersion'),
                macos_plist,
            ],
            OsFamily.WINDOWS: [
                command('powershell.exe', '-NoProfile', '-Command',
                        '(Get-WmiObject -Class Win32_OperatingSystem).Version'),
                EvidenceCheck('wmic os get Version',
                              lambda: parse_wmic_version(probe.command_output(['wmic', 'os', 'get', 'Version']))),
                EvidenceCheck('cmd.exe /c ver',
                              lambda: parse_windows_ver(probe.command_output(['cmd.exe', '/c', 'ver']))),
            ],
            OsFamily.WSL: [
                command_match(r'WSL[^0-9\n]*' + VERSION_PATTERN, 'wsl.exe', '--version'),
                command_match(r'^(\S*microsoft\S*)$', 'uname', '-r', flags=re.IGNORECASE),
            ],
            OsFamily.CYGWIN: [
                command_match(r'cygwin\)?\s*' + VERSION_PATTERN, 'cygcheck', '-V', flags=re.IGNORECASE),
                command_match(r'^' + VERSION_PATTERN, 'uname', '-r'),
            ],
            OsFamily.MINGW: [
                command_match(r'gcc(?:\.exe)?\s*\([^)]*MinGW[^)]*\)\s*' + VERSION_PATTERN,
                              'gcc', '--version', flags=re.IGNORECASE),
                command_match(VERSION_PATTERN, 'mingw-get', '--version'),
                command_match(r'^' + VERSION_PATTERN, 'uname', '-r'),
            ],
            OsFamily.FREEBSD: [
                command('freebsd-version'),
                os_release('VERSION'),
                kern_version,
                uname_release,
            ],
            OsFamily.OPENBSD: [
                uname_release,
                command_match(r'OpenBSD ([0-9]+\.[0-9]+)', 'dmesg'),
                kern_version,
            ],
            OsFamily.NETBSD: [
                uname_release,
                kern_version,
                command_match(r'NetBSD ([0-9]+\.[0-9]+)', 'dmesg'),
            ],
            OsFamily.DRAGONFLYBSD: [
                uname_release,
                command_match(r'DragonFly v([0-9]+\.[0-9]+)', 'dmesg'),
                kern_version,
            ],
            OsFamily.SOLARIS: [
                EvidenceCheck(SOLARIS_RELEASE, lambda: extract_version(
                    probe.read_file(SOLARIS_RELEASE), r'Solaris\s+([0-9]+(?:\.[0-9]+)*)')),
                uname_release,
            ],
            OsFamily.ANDROID: [
                command('getprop', 'ro.build.version.release'),
                EvidenceCheck(ANDROID_BUILD_PROP, lambda: parse_build_prop(
                    probe.read_file(ANDROID_BUILD_PROP), 'ro.build.version.release')),
            ],
            OsFamily.AIX: [
                command('oslevel'),
            ],
        }


class VersionNameDetector(BaseDetector):
    """Maps the resolved version number to a codename through static tables."""

    stage = 'Detecting version name...'
    label = 'Version Name'

    def detect(self, facts: HostFacts) -> HostFacts:
        family = facts.os_family
        if facts.os_version_number is None:
            logging.info("No version number, skipping version name.")
            report(self.label, None)
            return dataclasses.replace(facts, os_version_name=None)

        if family not in VERSION_NAMES:
            logging.info(f"No version name available for {family.value}")
            report(self.label, None)
            return dataclasses.replace(facts, os_version_name=None)

        name = lookup_version_name(family, facts.os_version_number)
        if name is None:
            logging.warning("Unable to map version number to version name.")
            name = 'Unknown'
        report(self.label, name)
        return dataclasses.replace(facts, os_version_name=name)


LINUX_DESKTOP_VARIABLES = ('XDG_CURRENT_DESKTOP', 'DESKTOP_SESSION', 'GDMSESSION')

LINUX_SESSION_EXECUTABLES = (
    ('kdialog', 'KDE'),
    ('gnome-session', 'GNOME'),
    ('xfce4-session', 'Xfce'),
    ('mate-session', 'MATE'),
    ('cinnamon-session', 'Cinnamon'),
    ('lxqt-session', 'LXQt'),
    ('lxsession', 'LXDE'),
    ('pantheon-session', 'Pantheon'),
    ('enlightenment_start', 'Enlightenment'),
    ('deepin-session', 'Deepin'),
)

UNKNOWN_LINUX_DESKTOP = 'Unknown Linux desktop environment'
UNKNOWN_WINDOWS_SHELL = 'Command Prompt (or unknown Windows shell)'


class DesktopEnvDetector(BaseDetector):
    """
    Detector for the desktop environment.

    Only Linux and Windows are inspected. Every other family reports its own
    name, and desktop variables in the environment are ignored for it.
    """

    stage = 'Detecting desktop environment...'
    label = 'Desktop Environment'

    def detect(self, facts: HostFacts) -> HostFacts:
        family = facts.os_family
        if family == OsFamily.LINUX:
            desktop_env = self._detect_linux()
        elif family == OsFamily.WINDOWS:
            desktop_env = self._detect_windows()
        else:
            if family == OsFamily.UNKNOWN:
                logging.warning(f"Unsupported operating system: {family.value}")
            desktop_env = family.value
        report(self.label, desktop_env)
        return dataclasses.replace(facts, desktop_env=desktop_env)

    def _detect_linux(self) -> str:
        probe = self.probe
        checks = [
            EvidenceCheck(f'{name} is set', lambda name=name: probe.env(name))
            for name in LINUX_DESKTOP_VARIABLES
        ]
        checks.extend(
            when(f'{executable} is available', lambda executable=executable: probe.has_command(executable), desktop)
            for executable, desktop in LINUX_SESSION_EXECUTABLES
        )
        desktop_env = first_match(checks, 'Linux desktop environment')
        if desktop_env is None:
            logging.warning("No known Linux desktop environment binaries found.")
            return UNKNOWN_LINUX_DESKTOP
        return desktop_env

    def _detect_windows(self) -> str:
        probe = self.probe

        def shell_type() -> str:
            return (probe.env('OSTYPE') or '').lower()

        checks = [
            when(f'microsoft in {PROC_VERSION}',
                 lambda: probe.file_contains(PROC_VERSION, 'microsoft', ignore_case=True),
                 'WSL (Windows Subsystem for Linux)'),
            when('OSTYPE is msys', lambda: shell_type().startswith('msys'), 'Git Bash'),
            when('MSYSTEM is set', lambda: probe.env('MSYSTEM') is not None, 'Git Bash'),
            when('OSTYPE is cygwin', lambda: shell_type().startswith('cygwin'), 'Cygwin'),
            when('powershell.exe is available', lambda: probe.has_command('powershell.exe'), 'PowerShell'),
        ]
        desktop_env = first_match(checks, 'Windows desktop environment')
        return desktop_env if desktop_env is not None else UNKNOWN_WINDOWS_SHELL


class ArchitectureDetector(BaseDetector):
    """Detector for the CPU architecture."""

    stage = 'Detecting architecture...'
    label = 'Architecture'

    def detect(self, facts: HostFacts) -> HostFacts:
        probe = self.probe
        checks = [
            EvidenceCheck('uname -m', lambda: probe.command_output(['uname', '-m'])),
            # Set for 32-bit processes on 64-bit Windows
            EvidenceCheck('PROCESSOR_ARCHITEW6432 is set', lambda: probe.env('PROCESSOR_ARCHITEW6432')),
            EvidenceCheck('PROCESSOR_ARCHITECTURE is set', lambda: probe.env('PROCESSOR_ARCHITECTURE')),
        ]
        machine = first_match(checks, 'Architecture')
        architecture = normalize_architecture(machine, facts.os_family)
        report(self.label, architecture.label)
        return dataclasses.replace(facts, architecture=architecture)


class KernelDetector(BaseDetector):
    """Detector for the kernel version, with OS specific fallbacks."""

    stage = 'Detecting kernel version...'
    label = 'Kernel'

    def detect(self, facts: HostFacts) -> HostFacts:
        probe = self.probe
        checks = [EvidenceCheck('uname -r', lambda: probe.command_output(['uname', '-r']))]
        family = facts.os_family
        if family == OsFamily.ANDROID:
            checks.append(EvidenceCheck('getprop ro.build.version.release',
                                        lambda: probe.command_output(['getprop', 'ro.build.version.release'])))
        elif family in (OsFamily.MACOS, OsFamily.IOS):
            checks.append(EvidenceCheck('uname -v', lambda: probe.command_output(['uname', '-v'])))
        elif family == OsFamily.WINDOWS:
            checks.append(EvidenceCheck('cmd.exe /c ver',
                                        lambda: parse_windows_ver(probe.command_output(['cmd.exe', '/c', 'ver']))))

        kernel = first_match(checks, 'Kernel')
        if kernel is None:
            logging.warning("Unable to detect kernel version.")
        report(self.label, kernel)
        return dataclasses.replace(facts, kernel_version=kernel)


# -------------------------------------------------------
# Orchestration
# -------------------------------------------------------


class HostFactsDetector:
    """Runs the fact detectors in their fixed order and collects the results."""

    def __init__(self, probe: Optional[HostProbe] = None):
        self.probe = probe if probe is not None else HostProbe()
        # The order matters: later detectors depend on the OS family
        self.detectors: List[BaseDetector] = [
            ContainerDetector(self.probe),
            OsFamilyDetector(self.probe),
            VersionNumberDetector(self.probe),
            VersionNameDetector(self.probe),
            DistroDetector(self.probe),
            DesktopEnvDetector(self.probe),
            ArchitectureDetector(self.probe),
            KernelDetector(self.probe),
        ]

    def detect(self) -> HostFacts:
        """Performs the detection process and returns the finished record."""
        logging.info("Starting detection...")
        facts = HostFacts()
        for detector in self.detectors:
            if not detector.applies_to(facts):
                continue
            logging.info(detector.stage)
            try:
                facts = detector.detect(facts)
            except Exception as e:
                logging.error(f"Error during detection with {detector.__class__.__name__}: {e}")
                report(detector.label, None)
        logging.info("Detection completed.")
        return facts


def run_detection(probe: Optional[HostProbe] = None) -> HostFacts:
    """Runs the full detection sequence against the current host (or the given probe)."""
    return HostFactsDetector(probe).detect()


# -------------------------------------------------------
# Command line
# -------------------------------------------------------


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parses command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Detect the container environment, operating system, desktop environment, "
                    "architecture and kernel of this host.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging (INFO level).'
    )
    parser.add_argument(
        '-vv', '--debug',
        action='store_true',
        help='Enable debug logging (DEBUG level).'
    )
    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Disable console logging.'
    )
    parser.add_argument(
        '-l', '--log-level',
        type=str,
        help='Console log level: none, default, verbose, debug or 0-3.\n'
             'Defaults to $CONSOLE_LOG_LEVEL, then "default".'
    )
    parser.add_argument(
        '-L', '--log-file',
        type=str,
        help='Append all log messages to the specified file (defaults to $LOG_FILE).'
    )
    parser.add_argument(
        '-o', '--output',
        type=str,
        help='Output the detection results to a specified file (JSON format).'
    )
    parser.add_argument(
        '-F', '--format',
        choices=['table', 'json', 'env'],
        default='table',
        help='Output format (default: table).'
    )
    parser.add_argument(
        '-t', '--timeout',
        type=float,
        default=DEFAULT_COMMAND_TIMEOUT,
        help=f'Timeout in seconds for each external command (default: {DEFAULT_COMMAND_TIMEOUT}).'
    )
    parser.add_argument(
        '-s', '--skip-checks',
        action='store_true',
        help='Skip the functional tests run before detection.'
    )
    return parser.parse_args(argv)


def parse_log_level(value: str) -> int:
    """Parses a console log level given as a name, an abbreviation or a number from 0 to 3."""
    text = str(value).strip().lower()
    if text in ('0', '1', '2', '3'):
        return int(text)
    if text in CONSOLE_LOG_LEVEL_NAMES:
        return CONSOLE_LOG_LEVEL_NAMES[text]
    raise ValueError(
        f"Invalid console log level '{value}'. Please use one of the following valid options: "
        "N/NONE/0, D/DEFAULT/1, V/VERBOSE/2, or DEB/DEBUG/3."
    )


def resolve_console_level(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> int:
    """Determines the console log level from the arguments, then the environment."""
    environ = os.environ if environ is None else environ
    if args.log_level:
        return parse_log_level(args.log_level)
    if args.debug:
        return 3
    if args.verbose:
        return 2
    if args.quiet:
        return 0
    if environ.get('CONSOLE_LOG_LEVEL'):
        return parse_log_level(environ['CONSOLE_LOG_LEVEL'])
    return 1


def setup_logging(console_level: int = 1) -> None:
    """Sets up the logging configuration."""
    handler = logging.StreamHandler()
    handler.setLevel(CONSOLE_LOG_LEVELS[console_level])
    logging.basicConfig(
        level=logging.DEBUG,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=[handler]
    )


def attach_log_file(log_file: str) -> bool:
    """Sends all log messages, whatever the console level, to the log file as well."""
    try:
        handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    except OSError as e:
        logging.error(f"Unable to open log file '{log_file}': {e}")
        return False
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    logging.getLogger().addHandler(handler)
    return True


def check_log_destination(log_file: str) -> bool:
    """Verifies that the log file (if present) and its directory can be read and written."""
    log_dir = os.path.dirname(os.path.abspath(log_file))
    logging.info(f"Verifying READ/WRITE permissions for log file directory: {log_dir}...")
    if not os.path.isdir(log_dir):
        logging.error(f"Directory {log_dir} does not exist.")
        return False
    if not os.access(log_dir, os.R_OK | os.W_OK):
        logging.error(f"Directory {log_dir} is not readable and writable.")
        return False

    if os.path.exists(log_file):
        logging.info(f"Verifying READ/WRITE permissions for log file: {log_file}...")
        if not os.path.isfile(log_file):
            logging.error(f"{log_file} is not a file.")
            return False
        if not os.access(log_file, os.R_OK | os.W_OK):
            logging.error(f"File {log_file} is not readable and writable.")
            return False
    return True


def run_preflight_checks(probe: HostProbe, log_file: Optional[str] = None) -> bool:
    """Checks that required commands are available and the log file can be written."""
    logging.info("Running functional tests...")
    passed = True
    for command in REQUIRED_COMMANDS:
        if not probe.has_command(command):
            logging.error(f"Command '{command}' is not available.")
            passed = False
    if log_file and not check_log_destination(log_file):
        passed = False
    if passed:
        logging.info("All functional tests passed.")
    return passed


class LockFile:
    """A lock file held for the duration of a run and removed on exit."""

    def __init__(self, path: str):
        self.path = path
        self.acquired = False

    def acquire(self) -> bool:
        try:
            with open(self.path, 'w', encoding='utf-8') as f:
                f.write(str(os.getpid()))
        except OSError as e:
            logging.warning(f"Unable to create lock file {self.path}: {e}")
            return False
        self.acquired = True
        atexit.register(self.release)
        return True

    def release(self) -> None:
        if not self.acquired:
            return
        logging.info("Cleaning up resources...")
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logging.warning(f"Unable to remove lock file {self.path}: {e}")
        self.acquired = False
        logging.info("Cleanup completed")


def _handle_termination(signum: int, frame: Any) -> None:
    logging.warning("Received termination signal. Exiting.")
    # SystemExit runs the atexit handlers, which release the lock file
    sys.exit(128 + signum)


def install_signal_handlers() -> None:
    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, _handle_termination)


def display_results(facts: HostFacts) -> None:
    """Displays the detection results as a table."""
    table = PrettyTable()
    table.field_names = ['Fact', 'Value']
    table.align = 'l'
    for label, value in facts.summary_rows():
        table.add_row([label, value])
    print(table)


def emit_results(facts: HostFacts, output_format: str) -> None:
    """Prints the results to stdout in the requested format."""
    if output_format == 'json':
        print(json.dumps(facts.to_dict(), indent=4))
    elif output_format == 'env':
        print('\n'.join(facts.to_env()))
    else:
        display_results(facts)


def save_output(data: Dict[str, Any], filepath: str) -> bool:
    """Saves the detection results to a JSON file."""
    try:
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=4)
        logging.info(f"Detection results saved to '{filepath}'.")
        return True
    except OSError as e:
        logging.error(f"Error saving detection results: {e}")
        return False


def main(argv: Optional[List[str]] = None) -> None:
    """Main function to orchestrate the host detection."""
    args = parse_arguments(argv)

    try:
        console_level = resolve_console_level(args)
    except ValueError as e:
        setup_logging()
        logging.error(str(e))
        sys.exit(1)
    setup_logging(console_level)
    logging.info(f"Console log level is set to: {console_level}")

    log_file = args.log_file or os.environ.get('LOG_FILE') or None
    probe = HostProbe(runner=CommandRunner(timeout=args.timeout))

    if not args.skip_checks and not run_preflight_checks(probe, log_file):
        sys.exit(1)

    if log_file:
        if not attach_log_file(log_file):
            sys.exit(1)
        LockFile(f'{log_file}.lock').acquire()
        install_signal_handlers()

    facts = run_detection(probe)
    emit_results(facts, args.format)

    if args.output and not save_output(facts.to_dict(), args.output):
        logging.error("Failed to save detection results.")
        sys.exit(1)

    logging.info("Exiting...")
    sys.exit(0)


if __name__ == "__main__":
    main()
