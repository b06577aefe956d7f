"""Rule-based classification of window samples."""

from __future__ import annotations

import os
import re
from typing import Optional

from .models import Classification, Sample
from .normalization import extract_domain

LANGUAGES: dict[str, str] = {
    ".py": "python", ".js": "javascript", ".jsx": "javascript",
    ".ts": "typescript", ".tsx": "typescript", ".rs": "rust", ".go": "go",
    ".java": "java", ".kt": "kotlin", ".swift": "swift", ".c": "c",
    ".h": "c", ".cpp": "cpp", ".cs": "csharp", ".rb": "ruby", ".php": "php",
    ".html": "html", ".css": "css", ".scss": "css", ".sql": "sql",
    ".sh": "shell", ".md": "markdown", ".json": "json", ".yaml": "yaml",
    ".yml": "yaml", ".toml": "toml",
}

APP_KEYWORDS: dict[str, str] = {
    "code": "development", "pycharm": "development", "intellij": "development",
    "idea": "development", "webstorm": "development", "xcode": "development",
    "sublime": "development", "vim": "development", "emacs": "development",
    "terminal": "development", "iterm": "development", "konsole": "development",
    "alacritty": "development", "wezterm": "development", "cursor": "development",
    "slack": "communication", "discord": "communication", "teams": "communication",
    "zoom": "communication", "outlook": "communication", "thunderbird": "communication",
    "mail": "communication", "telegram": "communication", "signal": "communication",
    "figma": "design", "photoshop": "design", "illustrator": "design",
    "gimp": "design", "inkscape": "design", "blender": "design",
    "word": "productivity", "excel": "productivity", "powerpoint": "productivity",
    "notion": "productivity", "obsidian": "productivity", "libreoffice": "productivity",
    "spotify": "entertainment", "vlc": "entertainment", "steam": "entertainment",
}

BROWSERS = ("chrome", "firefox", "safari", "msedge", "edge", "brave", "opera", "arc")

DOMAIN_CATEGORIES: dict[str, str] = {
    "github.com": "development", "gitlab.com": "development",
    "stackoverflow.com": "development", "docs.python.org": "development",
    "developer.mozilla.org": "development",
    "mail.google.com": "communication", "slack.com": "communication",
    "meet.google.com": "communication",
    "docs.google.com": "productivity", "notion.so": "productivity",
    "figma.com": "design",
    "youtube.com": "entertainment", "netflix.com": "entertainment",
    "twitch.tv": "entertainment",
    "twitter.com": "social_media", "x.com": "social_media",
    "reddit.com": "social_media", "facebook.com": "social_media",
    "instagram.com": "social_media", "linkedin.com": "social_media",
}

_TITLE_SEPARATOR = re.compile(r"\s+[-—–|]\s+")
_FILE_NAME = re.compile(r"^[\w.@+\-]+\.[A-Za-z0-9]{1,10}$")


class Classifier:
    """Derives category, project, file and domain details from a sample."""

    def __init__(
        self,
        app_keywords: Optional[dict[str, str]] = None,
        domain_categories: Optional[dict[str, str]] = None,
    ) -> None:
        self.app_keywords = app_keywords if app_keywords is not None else APP_KEYWORDS
        self.domain_categories = (
            domain_categories if domain_categories is not None else DOMAIN_CATEGORIES
        )

    def classify(self, sample: Sample) -> Classification:
        app = sample.app_name.lower()
        domain = extract_domain(sample.url)
        parts = self._title_parts(sample.window_title)
        file_name = self._file_name(parts)
        extension = os.path.splitext(file_name)[1].lower() if file_name else ""

        category: Optional[str] = None
        rule: Optional[str] = None
        if domain:
            category = self._domain_category(domain)
            rule = "domain" if category else None
        if category is None:
            category = self._app_category(app)
            rule = "app" if category else None
        if category is None and any(browser in app for browser in BROWSERS):
            category, rule = "browsing", "browser"

        project_name = None
        if file_name and category == "development" and len(parts) >= 3:
            project_name = parts[1]

        return Classification(
            category=category,
            project_name=project_name,
            file_name=file_name,
            file_type=extension.lstrip(".") or None,
            language=LANGUAGES.get(extension),
            domain=domain,
            context={"rule": rule} if rule else None,
        )

    def _app_category(self, app: str) -> Optional[str]:
        for keyword, category in self.app_keywords.items():
            if keyword in app:
                return category
        return None

    def _domain_category(self, domain: str) -> Optional[str]:
        host = domain
        while host:
            category = self.domain_categories.get(host)
            if category:
                return category
            _, _, host = host.partition(".")
        return None

    @staticmethod
    def _title_parts(window_title: Optional[str]) -> list[str]:
        if not window_title:
            return []
        return [part.strip() for part in _TITLE_SEPARATOR.split(window_title) if part.strip()]

    @staticmethod
    def _file_name(parts: list[str]) -> Optional[str]:
        if not parts:
            return None
        # Editors prefix unsaved files with a dot or bullet marker.
        candidate = parts[0].lstrip("●• ").strip()
        return candidate if _FILE_NAME.match(candidate) else None
