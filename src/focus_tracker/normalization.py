"""Utilities to normalize window titles and URLs."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

_BROWSER_SUFFIXES: dict[str, tuple[str, ...]] = {
    "msedge": (" - Work - Microsoft Edge", " - Microsoft Edge"),
    "chrome": (" - Google Chrome",),
    "google chrome": (" - Google Chrome",),
    "firefox": (" - Mozilla Firefox", " — Mozilla Firefox"),
    "brave": (" - Brave",),
    "opera": (" - Opera",),
}


def normalize_app_name(app_name: Optional[str]) -> Optional[str]:
    """Strip whitespace and a trailing ``.exe`` from a process name."""
    if not app_name:
        return None
    name = app_name.strip()
    if name.lower().endswith(".exe"):
        name = name[:-4]
    return name or None


def normalize_window_title(app_name: Optional[str], window_title: Optional[str]) -> Optional[str]:
    """Remove common browser suffixes to surface tab names."""
    if not window_title:
        return None
    normalized = window_title.strip()
    if not app_name:
        return normalized or None

    suffixes = _BROWSER_SUFFIXES.get(app_name.lower().removesuffix(".exe"))
    if suffixes:
        for suffix in suffixes:
            if normalized.endswith(suffix):
                normalized = normalized[: -len(suffix)].rstrip(" -")
                break

    normalized = _strip_tab_count(normalized)
    normalized = re.sub(r"\s{2,}", " ", normalized).strip()
    return normalized or None


_EXTRA_TAB_COUNT_PATTERN = re.compile(r"\s+and\s+\d+\s+more\s+pages?", re.IGNORECASE)


def _strip_tab_count(value: str) -> str:
    cleaned = _EXTRA_TAB_COUNT_PATTERN.sub("", value)
    return cleaned.strip(" -|")


def extract_domain(url: Optional[str]) -> Optional[str]:
    """Return the host of ``url`` without a leading ``www.``."""
    if not url:
        return None
    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"https://{candidate}"
    host = urlsplit(candidate).hostname
    if not host:
        return None
    return host.removeprefix("www.")
