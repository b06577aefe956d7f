"""Platform probes for the focused window and user idle time."""

from __future__ import annotations

import ctypes
import logging
import os
import subprocess
import sys
from datetime import datetime
from typing import Callable, Optional, Protocol

import psutil

from .models import Sample
from .normalization import normalize_app_name, normalize_window_title

logger = logging.getLogger(__name__)


class WindowSampleSource(Protocol):
    def poll(self) -> Optional[Sample]: ...


class IdleDetector(Protocol):
    def is_idle(self, threshold_ms: int) -> bool: ...


def _make_sample(
    process_name: Optional[str],
    window_title: Optional[str],
    clock: Callable[[], datetime],
    url: Optional[str] = None,
) -> Optional[Sample]:
    app_name = normalize_app_name(process_name)
    if app_name is None:
        return None
    return Sample(
        app_name=app_name,
        window_title=normalize_window_title(app_name, window_title),
        url=url or None,
        timestamp=clock(),
    )


def _process_name(pid: int) -> Optional[str]:
    if not pid:
        return None
    try:
        return psutil.Process(pid).name()
    except (psutil.Error, ProcessLookupError):
        return None


class UnsupportedWindowSource:
    """Used where the focused window cannot be observed; never yields samples."""

    def __init__(self, reason: str) -> None:
        self.reason = reason

    def poll(self) -> Optional[Sample]:
        return None


class NeverIdleDetector:
    def is_idle(self, threshold_ms: int) -> bool:
        return False


class WindowsIdleDetector:
    """Detects idle state using Win32 APIs."""

    def __init__(self) -> None:
        from ctypes import wintypes

        class LASTINPUTINFO(ctypes.Structure):
            _fields_ = [("cbSize", wintypes.UINT), ("dwTime", wintypes.DWORD)]

        self._info_type = LASTINPUTINFO
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]

    def milliseconds_since_input(self) -> int:
        last_input = self._info_type()
        last_input.cbSize = ctypes.sizeof(last_input)
        if not self._user32.GetLastInputInfo(ctypes.byref(last_input)):
            raise ctypes.WinError()  # type: ignore[attr-defined]
        elapsed = self._kernel32.GetTickCount64() - last_input.dwTime
        return int(elapsed)

    def is_idle(self, threshold_ms: int) -> bool:
        try:
            return self.milliseconds_since_input() >= threshold_ms
        except OSError:  # pragma: no cover - platform specific
            logger.exception("Failed to query idle state; assuming not idle.")
            return False


class WindowsWindowSource:
    """Retrieves the foreground window title and process name."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._clock = clock

    def poll(self) -> Optional[Sample]:
        from ctypes import wintypes

        hwnd = self._user32.GetForegroundWindow()
        if not hwnd:
            return None

        length = self._user32.GetWindowTextLengthW(hwnd)
        buffer = ctypes.create_unicode_buffer(length + 1)
        self._user32.GetWindowTextW(hwnd, buffer, length + 1)
        window_title = buffer.value.strip() or None

        pid = wintypes.DWORD()
        self._user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        return _make_sample(_process_name(pid.value), window_title, self._clock)


class X11WindowSource:
    """Queries the active X11 window through ``xdotool``."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock

    def poll(self) -> Optional[Sample]:
        try:
            out = subprocess.check_output(
                ["xdotool", "getactivewindow", "getwindowpid", "getwindowname"],
                text=True,
                stderr=subprocess.DEVNULL,
                timeout=2,
            )
        except subprocess.CalledProcessError:
            # No window has focus.
            return None
        except (OSError, subprocess.SubprocessError):
            logger.exception("xdotool query failed")
            return None
        lines = out.splitlines()
        if len(lines) < 2 or not lines[0].strip().isdigit():
            return None
        return _make_sample(_process_name(int(lines[0])), lines[1], self._clock)


class XPrintIdleDetector:
    """Reads X11 idle time from ``xprintidle``."""

    def is_idle(self, threshold_ms: int) -> bool:
        try:
            out = subprocess.check_output(
                ["xprintidle"], text=True, stderr=subprocess.DEVNULL, timeout=2
            )
            return int(out.strip()) >= threshold_ms
        except (OSError, subprocess.SubprocessError, ValueError):
            logger.exception("xprintidle query failed; assuming not idle")
            return False


_FRONT_APP_SCRIPT = """
tell application "System Events"
    set frontApp to first application process whose frontmost is true
    set appName to name of frontApp
    try
        set windowTitle to name of front window of frontApp
    on error
        set windowTitle to ""
    end try
end tell
return appName & linefeed & windowTitle
"""

_SAFARI_URL_SCRIPT = 'tell application "{app}" to return URL of front document'
_CHROMIUM_URL_SCRIPT = 'tell application "{app}" to return URL of active tab of front window'

# Browsers whose front tab URL is scriptable, by process name.
BROWSER_URL_SCRIPTS = {
    "Safari": _SAFARI_URL_SCRIPT,
    "Safari Technology Preview": _SAFARI_URL_SCRIPT,
    "Google Chrome": _CHROMIUM_URL_SCRIPT,
    "Chromium": _CHROMIUM_URL_SCRIPT,
    "Brave Browser": _CHROMIUM_URL_SCRIPT,
    "Microsoft Edge": _CHROMIUM_URL_SCRIPT,
    "Arc": _CHROMIUM_URL_SCRIPT,
    "Vivaldi": _CHROMIUM_URL_SCRIPT,
}


def _osascript(script: str) -> str:
    return subprocess.check_output(
        ["osascript", "-e", script],
        text=True,
        stderr=subprocess.DEVNULL,
        timeout=2,
    )


class MacWindowSource:
    """Asks System Events for the frontmost application and window.

    For known browsers the URL of the front tab is read as well; Firefox
    does not expose it to AppleScript.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock

    def poll(self) -> Optional[Sample]:
        try:
            out = _osascript(_FRONT_APP_SCRIPT)
        except (OSError, subprocess.SubprocessError):
            logger.exception("osascript query failed")
            return None
        app_name, _, window_title = out.strip("\n").partition("\n")
        return _make_sample(
            app_name, window_title or None, self._clock, url=self.front_tab_url(app_name)
        )

    def front_tab_url(self, app_name: str) -> Optional[str]:
        script = BROWSER_URL_SCRIPTS.get(app_name)
        if script is None:
            return None
        try:
            return _osascript(script.format(app=app_name)).strip() or None
        except (OSError, subprocess.SubprocessError):
            # Denied automation permission or no open window.
            logger.debug("Could not read the front tab URL of %s", app_name, exc_info=True)
            return None


def is_wayland_session() -> bool:
    return bool(os.environ.get("WAYLAND_DISPLAY")) or (
        os.environ.get("XDG_SESSION_TYPE") == "wayland"
    )


def create_window_source(clock: Callable[[], datetime] = datetime.now) -> WindowSampleSource:
    """Pick the window source for the running platform."""
    if sys.platform == "win32":
        return WindowsWindowSource(clock)
    if sys.platform == "darwin":
        return MacWindowSource(clock)
    if sys.platform.startswith("linux"):
        if is_wayland_session():
            return UnsupportedWindowSource(
                "Wayland detected. Please switch to X11 for window tracking."
            )
        return X11WindowSource(clock)
    return UnsupportedWindowSource(f"Window tracking not supported on {sys.platform}")


def create_idle_detector() -> IdleDetector:
    if sys.platform == "win32":
        return WindowsIdleDetector()
    if sys.platform.startswith("linux") and not is_wayland_session():
        return XPrintIdleDetector()
    return NeverIdleDetector()
