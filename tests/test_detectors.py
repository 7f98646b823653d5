import logging

from detect_host_facts import (
    ArchitectureDetector,
    ArchitectureType,
    ContainerDetector,
    ContainerType,
    DesktopEnvDetector,
    DistroDetector,
    EvidenceCheck,
    HostFacts,
    KernelDetector,
    OsFamily,
    OsFamilyDetector,
    VersionNameDetector,
    VersionNumberDetector,
    first_match,
)


def _warnings(caplog):
    return [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]


# -------------------------------------------------------
# Cascade
# -------------------------------------------------------


def test_first_match_stops_at_first_hit():
    evaluated = []

    def check(name, value):
        return EvidenceCheck(name, lambda: evaluated.append(name) or value)

    result = first_match([check('a', None), check('b', 'B'), check('c', 'C')], 'Test')
    assert result == 'B'
    assert evaluated == ['a', 'b']


def test_first_match_returns_none_when_exhausted():
    assert first_match([EvidenceCheck('a', lambda: None)], 'Test') is None
    assert first_match([], 'Test') is None


# -------------------------------------------------------
# Container
# -------------------------------------------------------


def test_no_container(host):
    facts = ContainerDetector(host.probe).detect(HostFacts())
    assert facts.container == ContainerType.NONE
    assert not facts.in_container


def test_docker_wins_over_kubernetes(host):
    host.file('/.dockerenv')
    host.file('/proc/1/cgroup', '0::/kubepods/burstable/pod42/abc\n')
    facts = ContainerDetector(host.probe).detect(HostFacts())
    assert facts.container == ContainerType.DOCKER
    assert facts.in_container


def test_container_cascade_short_circuits(host, recording_probe):
    host.file('/.dockerenv')
    host.file('/proc/1/cgroup', '0::/kubepods/burstable/pod42/abc\n')
    probe = recording_probe()

    ContainerDetector(probe).detect(HostFacts())
    assert probe.lookups == ['is_file /.dockerenv']


def test_container_cgroup_markers(host):
    cases = [
        ('0::/machine.slice/libpod-3b8e.scope\n', ContainerType.PODMAN),
        ('0::/kubepods/besteffort/pod1\n', ContainerType.KUBERNETES),
        ('0::/lxc/web01\n', ContainerType.LXC),
        ('0::/system.slice/containerd.service\n', ContainerType.GENERIC),
    ]
    for cgroup, expected in cases:
        host.file('/proc/1/cgroup', cgroup)
        assert ContainerDetector(host.probe).detect(HostFacts()).container == expected


def test_podman_env_file(host):
    host.file('/run/.containerenv', 'engine="podman-4.9.3"\n')
    assert ContainerDetector(host.probe).detect(HostFacts()).container == ContainerType.PODMAN


def test_openvz_status_marker(host):
    host.file('/proc/self/status', 'Name:\tbash\nVxID:\t101\n')
    assert ContainerDetector(host.probe).detect(HostFacts()).container == ContainerType.OPENVZ


# -------------------------------------------------------
# OS family
# -------------------------------------------------------


def test_os_family_from_kernel_name(host):
    host.command('uname -s', 'SunOS')
    assert OsFamilyDetector(host.probe).detect(HostFacts()).os_family == OsFamily.SOLARIS


def test_darwin_with_mobile_directory_is_ios(host):
    host.command('uname -s', 'Darwin')
    assert OsFamilyDetector(host.probe).detect(HostFacts()).os_family == OsFamily.MACOS

    host.dir('/var/mobile')
    assert OsFamilyDetector(host.probe).detect(HostFacts()).os_family == OsFamily.IOS


def test_linux_with_build_prop_is_android(host):
    host.command('uname -s', 'Linux')
    host.file('/system/build.prop', 'ro.build.version.release=13\n')
    assert OsFamilyDetector(host.probe).detect(HostFacts()).os_family == OsFamily.ANDROID


def test_fallback_when_uname_is_missing(host):
    host.file('/proc/version', 'Linux version 5.15.133.1-microsoft-standard-WSL2')
    assert OsFamilyDetector(host.probe).detect(HostFacts()).os_family == OsFamily.WSL


def test_fallback_for_unrecognized_kernel_name(host):
    host.command('uname -s', 'Plan9')
    host.env('WINDIR', 'C:\\Windows')
    assert OsFamilyDetector(host.probe).detect(HostFacts()).os_family == OsFamily.WINDOWS


def test_fallback_macos_marker(host):
    host.dir('/System/Library/CoreServices')
    assert OsFamilyDetector(host.probe).detect(HostFacts()).os_family == OsFamily.MACOS


def test_os_family_unknown_without_evidence(host, caplog):
    facts = OsFamilyDetector(host.probe).detect(HostFacts())
    assert facts.os_family == OsFamily.UNKNOWN
    assert 'Unable to detect OS.' in _warnings(caplog)


def test_os_family_is_always_an_enum_member(host):
    for kernel_name in ('Linux', 'Darwin', 'OpenBSD', 'NetBSD', 'AIX', 'Haiku', ''):
        host.command('uname -s', kernel_name)
        family = OsFamilyDetector(host.probe).detect(HostFacts()).os_family
        assert isinstance(family, OsFamily)


# -------------------------------------------------------
# Distribution
# -------------------------------------------------------


def test_distro_only_applies_to_linux(host):
    detector = DistroDetector(host.probe)
    assert detector.applies_to(HostFacts(os_family=OsFamily.LINUX))
    assert not detector.applies_to(HostFacts(os_family=OsFamily.FREEBSD))


def test_distro_from_os_release(linux_host):
    facts = DistroDetector(linux_host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.distro_name == 'Ubuntu'


def test_distro_from_usr_lib_os_release(host):
    host.file('/usr/lib/os-release', 'NAME="Arch Linux"\n')
    facts = DistroDetector(host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.distro_name == 'Arch Linux'


def test_distro_from_lsb_release(host):
    host.command('lsb_release -si', 'Debian')
    facts = DistroDetector(host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.distro_name == 'Debian'


def test_distro_unknown(host, caplog):
    facts = DistroDetector(host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.distro_name == 'Unknown'
    assert _warnings(caplog)


# -------------------------------------------------------
# Version number
# -------------------------------------------------------


def test_macos_version_from_sw_vers(host):
    host.command('sw_vers -productVersion', '14.5')
    facts = VersionNumberDetector(host.probe).detect(HostFacts(os_family=OsFamily.MACOS))
    assert facts.os_version_number == '14.5'


def test_macos_version_from_plist(host):
    host.file('/System/Library/CoreServices/SystemVersion.plist',
              '<?xml version="1.0" encoding="UTF-8"?>\n<plist version="1.0"><dict>'
              '<key>ProductVersion</key><string>13.6.7</string></dict></plist>\n')
    facts = VersionNumberDetector(host.probe).detect(HostFacts(os_family=OsFamily.MACOS))
    assert facts.os_version_number == '13.6.7'


def test_windows_tools_are_tried_in_order(host):
    host.command('powershell.exe')
    host.command('wmic os get Version', 'Version\n10.0.19045\n')
    host.command('cmd.exe /c ver', 'Microsoft Windows [Version 10.0.19045.4291]')

    facts = VersionNumberDetector(host.probe).detect(HostFacts(os_family=OsFamily.WINDOWS))
    assert facts.os_version_number == '10.0.19045'
    assert host.runner.calls[-1] == 'wmic os get Version'
    assert 'cmd.exe /c ver' not in host.runner.calls


def test_windows_version_from_ver(host):
    host.command('cmd.exe /c ver', 'Microsoft Windows [Version 10.0.22631.3593]')
    facts = VersionNumberDetector(host.probe).detect(HostFacts(os_family=OsFamily.WINDOWS))
    assert facts.os_version_number == '10.0.22631.3593'


def test_android_version_from_getprop(host):
    host.command('getprop ro.build.version.release', '14')
    facts = VersionNumberDetector(host.probe).detect(HostFacts(os_family=OsFamily.ANDROID))
    assert facts.os_version_number == '14'


def test_linux_version_from_os_release(linux_host):
    facts = VersionNumberDetector(linux_host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.os_version_number == '22.04'


def test_linux_version_from_debian_version(host):
    host.file('/etc/debian_version', '12.5\n')
    facts = VersionNumberDetector(host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.os_version_number == '12.5'


def test_openbsd_version_from_sysctl(host):
    host.command('sysctl -n kern.version', 'OpenBSD 7.4 (GENERIC.MP) #1397: Tue Oct 10 09:02:37 MDT 2023')
    facts = VersionNumberDetector(host.probe).detect(HostFacts(os_family=OsFamily.OPENBSD))
    assert facts.os_version_number == '7.4'


def test_solaris_version_from_release_file(host):
    host.file('/etc/release', '                             Oracle Solaris 11.4 X86\n')
    facts = VersionNumberDetector(host.probe).detect(HostFacts(os_family=OsFamily.SOLARIS))
    assert facts.os_version_number == '11.4'


def test_version_number_unresolved_warns(host, caplog):
    facts = VersionNumberDetector(host.probe).detect(HostFacts(os_family=OsFamily.AIX))
    assert facts.os_version_number is None
    assert 'Unable to detect version number.' in _warnings(caplog)


def test_version_number_without_strategies(host, caplog):
    caplog.set_level(logging.INFO)
    facts = VersionNumberDetector(host.probe).detect(HostFacts(os_family=OsFamily.UNKNOWN))
    assert facts.os_version_number is None
    assert not _warnings(caplog)
    assert host.runner.calls == []


# -------------------------------------------------------
# Version name
# -------------------------------------------------------


def test_version_name_sonoma():
    facts = HostFacts(os_family=OsFamily.MACOS, os_version_number='14.5')
    assert VersionNameDetector(None).detect(facts).os_version_name == 'Sonoma'


def test_version_name_catalina():
    facts = HostFacts(os_family=OsFamily.MACOS, os_version_number='10.15.7')
    assert VersionNameDetector(None).detect(facts).os_version_name == 'Catalina'


def test_version_name_unmapped_warns(caplog):
    facts = HostFacts(os_family=OsFamily.MACOS, os_version_number='99.0')
    assert VersionNameDetector(None).detect(facts).os_version_name == 'Unknown'
    assert 'Unable to map version number to version name.' in _warnings(caplog)


def test_version_name_requires_version_number(caplog):
    facts = HostFacts(os_family=OsFamily.MACOS)
    assert VersionNameDetector(None).detect(facts).os_version_name is None
    assert not _warnings(caplog)


def test_no_version_name_for_linux(caplog):
    facts = HostFacts(os_family=OsFamily.LINUX, os_version_number='22.04')
    assert VersionNameDetector(None).detect(facts).os_version_name is None
    assert not _warnings(caplog)


# -------------------------------------------------------
# Desktop environment
# -------------------------------------------------------


def test_macos_ignores_linux_desktop_variables(host, recording_probe):
    host.env('XDG_CURRENT_DESKTOP', 'KDE')
    host.env('DESKTOP_SESSION', 'plasma')
    host.command('kdialog')
    probe = recording_probe()

    facts = DesktopEnvDetector(probe).detect(HostFacts(os_family=OsFamily.MACOS))
    assert facts.desktop_env == 'MacOS'
    assert probe.lookups == []


def test_linux_desktop_variables_in_priority_order(host):
    host.env('DESKTOP_SESSION', 'plasma')
    host.env('GDMSESSION', 'ubuntu')
    facts = DesktopEnvDetector(host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.desktop_env == 'plasma'

    host.env('XDG_CURRENT_DESKTOP', 'ubuntu:GNOME')
    facts = DesktopEnvDetector(host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.desktop_env == 'ubuntu:GNOME'


def test_linux_desktop_from_session_executables(host):
    host.command('xfce4-session')
    host.command('mate-session')
    facts = DesktopEnvDetector(host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.desktop_env == 'Xfce'


def test_linux_desktop_lxqt_before_lxde(host):
    host.command('lxsession')
    host.command('lxqt-session')
    facts = DesktopEnvDetector(host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.desktop_env == 'LXQt'


def test_linux_desktop_unknown(host, caplog):
    facts = DesktopEnvDetector(host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.desktop_env == 'Unknown Linux desktop environment'
    assert _warnings(caplog)


def test_windows_shells(host):
    windows = HostFacts(os_family=OsFamily.WINDOWS)
    assert DesktopEnvDetector(host.probe).detect(windows).desktop_env == \
        'Command Prompt (or unknown Windows shell)'

    host.command('powershell.exe')
    assert DesktopEnvDetector(host.probe).detect(windows).desktop_env == 'PowerShell'

    host.env('OSTYPE', 'cygwin')
    assert DesktopEnvDetector(host.probe).detect(windows).desktop_env == 'Cygwin'

    host.env('OSTYPE', 'msys')
    assert DesktopEnvDetector(host.probe).detect(windows).desktop_env == 'Git Bash'

    host.file('/proc/version', 'Linux version 4.4.0-19041-Microsoft')
    assert DesktopEnvDetector(host.probe).detect(windows).desktop_env == 'WSL (Windows Subsystem for Linux)'


def test_unknown_family_desktop_warns(host, caplog):
    facts = DesktopEnvDetector(host.probe).detect(HostFacts())
    assert facts.desktop_env == 'Unknown'
    assert _warnings(caplog)


# -------------------------------------------------------
# Architecture and kernel
# -------------------------------------------------------


def test_architecture_from_uname(host):
    host.command('uname -m', 'armv7l')
    facts = ArchitectureDetector(host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.architecture.label == 'ARM (32-bit)'


def test_architecture_from_windows_environment(host):
    host.env('PROCESSOR_ARCHITECTURE', 'x86')
    host.env('PROCESSOR_ARCHITEW6432', 'AMD64')
    facts = ArchitectureDetector(host.probe).detect(HostFacts(os_family=OsFamily.WINDOWS))
    assert facts.architecture.type == ArchitectureType.X86_64


def test_architecture_unknown(host):
    facts = ArchitectureDetector(host.probe).detect(HostFacts())
    assert facts.architecture.type == ArchitectureType.UNKNOWN


def test_kernel_from_uname(linux_host):
    facts = KernelDetector(linux_host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.kernel_version == '6.5.0-35-generic'


def test_kernel_android_surrogate(host):
    host.command('getprop ro.build.version.release', '14')
    facts = KernelDetector(host.probe).detect(HostFacts(os_family=OsFamily.ANDROID))
    assert facts.kernel_version == '14'


def test_kernel_darwin_surrogate(host):
    host.command('uname -v', 'Darwin Kernel Version 23.5.0')
    facts = KernelDetector(host.probe).detect(HostFacts(os_family=OsFamily.MACOS))
    assert facts.kernel_version == 'Darwin Kernel Version 23.5.0'


def test_kernel_unknown(host, caplog):
    facts = KernelDetector(host.probe).detect(HostFacts(os_family=OsFamily.LINUX))
    assert facts.kernel_version is None
    assert 'Unable to detect kernel version.' in _warnings(caplog)
