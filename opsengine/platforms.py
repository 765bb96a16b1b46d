"""Platform detection and per-platform command templates."""
from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from opsengine import parsers
from opsengine.errors import PlatformUnsupported
from opsengine.models import DiskUsage, MemoryReading

BROWSER_TARGET_HINTS: tuple[str, ...] = ("onshape", "3d", "cad")
_LAUNCHER_SHIMS = frozenset({"xdg-open", "open"})
_OPEN_APP = re.compile(r'open -a "([^"]+)"')


class PlatformTag(str, Enum):
    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"


def current_platform(system: str | None = None) -> PlatformTag:
    """Map ``sys.platform`` (or the given value) to a :class:`PlatformTag`."""
    name = (system if system is not None else sys.platform).lower()
    if name.startswith("win") or name == "cygwin":
        return PlatformTag.WINDOWS
    if name == "darwin" or name == "macos":
        return PlatformTag.MACOS
    return PlatformTag.LINUX


def wants_browser(target: str) -> bool:
    """CAD and 3D modelling targets open in the browser instead of natively."""
    lowered = (target or "").lower()
    return any(hint in lowered for hint in BROWSER_TARGET_HINTS)


@dataclass(frozen=True)
class PlatformProfile:
    """Command templates for one platform.

    Templates use ``{name}`` as the application placeholder. Queries that a
    platform cannot answer are ``None``.
    """

    tag: PlatformTag
    app_aliases: Mapping[str, str]
    open_template: str
    close_template: Optional[str] = None
    disk_query: Optional[str] = None
    memory_query: Optional[str] = None
    cpu_query: Optional[str] = None
    active_window_query: Optional[str] = None
    disk_parser: Optional[Callable[[str], DiskUsage]] = field(default=None, repr=False)
    memory_parser: Optional[Callable[[str], MemoryReading]] = field(default=None, repr=False)

    def open_command(self, name: str) -> str:
        cleaned = name.strip()
        alias = self.app_aliases.get(cleaned.lower())
        if alias:
            return alias
        return self.open_template.format(name=cleaned)

    def process_name(self, name: str) -> str:
        """Name of the process an aliased launch leaves running, for closing it."""
        cleaned = name.strip()
        alias = self.app_aliases.get(cleaned.lower())
        if not alias:
            return cleaned
        if self.tag is PlatformTag.MACOS:
            match = _OPEN_APP.search(alias)
            return match.group(1) if match else cleaned
        tokens = alias.split()
        if self.tag is PlatformTag.WINDOWS and tokens[0] == "start" and len(tokens) > 1:
            tokens = tokens[1:]
        program = tokens[0]
        # hands off to another program and exits
        if program in _LAUNCHER_SHIMS:
            return cleaned
        return program

    def close_command(self, name: str) -> str:
        if not self.close_template:
            raise PlatformUnsupported("Application closing", self.tag.value)
        cleaned = self.process_name(name)
        if self.tag is PlatformTag.WINDOWS and cleaned.lower().endswith(".exe"):
            cleaned = cleaned[:-4]
        return self.close_template.format(name=cleaned)

    def require(self, query: str) -> str:
        """Return the named query command or raise :class:`PlatformUnsupported`."""
        command = getattr(self, f"{query}_query", None)
        if not command:
            raise PlatformUnsupported(f"{query.capitalize()} query", self.tag.value)
        return command


_POWERSHELL = "powershell -NoProfile -NonInteractive -Command"

_WINDOWS_ALIASES = {
    "notepad": "notepad.exe",
    "calculator": "calc.exe",
    "browser": "start chrome",
    "chrome": "start chrome",
    "firefox": "start firefox",
    "edge": "start msedge",
    "vscode": "code",
    "visual studio code": "code",
    "file explorer": "explorer",
    "explorer": "explorer",
    "task manager": "taskmgr",
    "control panel": "control",
    "paint": "mspaint",
    "cmd": "start cmd",
    "powershell": "start powershell",
}

_MACOS_ALIASES = {
    "browser": 'open -a "Safari"',
    "safari": 'open -a "Safari"',
    "chrome": 'open -a "Google Chrome"',
    "firefox": 'open -a "Firefox"',
    "vscode": 'open -a "Visual Studio Code"',
    "visual studio code": 'open -a "Visual Studio Code"',
    "calculator": 'open -a "Calculator"',
    "notepad": 'open -a "TextEdit"',
    "file explorer": "open .",
    "finder": 'open -a "Finder"',
    "terminal": 'open -a "Terminal"',
    "task manager": 'open -a "Activity Monitor"',
}

_LINUX_ALIASES = {
    "browser": "xdg-open about:blank",
    "chrome": "google-chrome",
    "firefox": "firefox",
    "vscode": "code",
    "visual studio code": "code",
    "calculator": "gnome-calculator",
    "notepad": "gedit",
    "file explorer": "xdg-open .",
    "explorer": "xdg-open .",
    "terminal": "x-terminal-emulator",
    "task manager": "gnome-system-monitor",
}

_ACTIVE_WINDOW_SCRIPT = (
    "Add-Type -TypeDefinition 'using System; using System.Text; using System.Runtime.InteropServices; "
    "public class ForegroundWindow { "
    "[DllImport(\\\"user32.dll\\\")] public static extern IntPtr GetForegroundWindow(); "
    "[DllImport(\\\"user32.dll\\\")] public static extern int GetWindowText(IntPtr h, StringBuilder t, int c); }'; "
    "$title = New-Object System.Text.StringBuilder 256; "
    "[void][ForegroundWindow]::GetWindowText([ForegroundWindow]::GetForegroundWindow(), $title, 256); "
    "$title.ToString()"
)

_PROFILES: dict[PlatformTag, PlatformProfile] = {
    PlatformTag.WINDOWS: PlatformProfile(
        tag=PlatformTag.WINDOWS,
        app_aliases=MappingProxyType(_WINDOWS_ALIASES),
        open_template='start "" "{name}"',
        close_template='taskkill /IM "{name}.exe" /F',
        disk_query=(
            f"{_POWERSHELL} \"Get-CimInstance Win32_LogicalDisk | "
            "Where-Object DeviceID -eq 'C:' | Select-Object Size,FreeSpace | Format-Table -AutoSize\""
        ),
        memory_query=(
            f"{_POWERSHELL} \"Get-CimInstance Win32_OperatingSystem | "
            "Format-List TotalVisibleMemorySize,FreePhysicalMemory\""
        ),
        cpu_query=(
            f"{_POWERSHELL} \"(Get-CimInstance Win32_Processor | "
            "Measure-Object -Property LoadPercentage -Average).Average\""
        ),
        active_window_query=f'{_POWERSHELL} "{_ACTIVE_WINDOW_SCRIPT}"',
        disk_parser=parsers.parse_windows_disk,
        memory_parser=parsers.parse_windows_memory,
    ),
    PlatformTag.MACOS: PlatformProfile(
        tag=PlatformTag.MACOS,
        app_aliases=MappingProxyType(_MACOS_ALIASES),
        open_template='open -a "{name}"',
        close_template="osascript -e 'quit app \"{name}\"'",
        memory_query="sysctl hw.memsize hw.pagesize vm.page_free_count",
        memory_parser=parsers.parse_macos_memory,
    ),
    PlatformTag.LINUX: PlatformProfile(
        tag=PlatformTag.LINUX,
        app_aliases=MappingProxyType(_LINUX_ALIASES),
        open_template="{name}",
        close_template='pkill -f "{name}"',
        disk_query="df -Pk /",
        memory_query="cat /proc/meminfo",
        disk_parser=parsers.parse_posix_disk,
        memory_parser=parsers.parse_linux_memory,
    ),
}


def resolve(tag: PlatformTag | str | None = None) -> PlatformProfile:
    """Return the command profile for ``tag`` (default: the running platform)."""
    if tag is None:
        return _PROFILES[current_platform()]
    if isinstance(tag, PlatformTag):
        return _PROFILES[tag]
    try:
        return _PROFILES[PlatformTag(str(tag).lower())]
    except ValueError:
        return _PROFILES[current_platform(str(tag))]


__all__ = [
    "BROWSER_TARGET_HINTS",
    "PlatformProfile",
    "PlatformTag",
    "current_platform",
    "resolve",
    "wants_browser",
]
