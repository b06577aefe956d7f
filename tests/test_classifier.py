from datetime import datetime

import pytest

from focus_tracker.classifier import Classifier
from focus_tracker.models import Sample
from focus_tracker.normalization import extract_domain, normalize_app_name, normalize_window_title

NOW = datetime(2026, 3, 10, 9, 0)


@pytest.fixture
def classifier():
    return Classifier()


def test_editor_title_yields_file_and_project(classifier):
    result = classifier.classify(
        Sample("Code", "● collector.py - focus-tracker - Visual Studio Code", None, NOW)
    )
    assert result.category == "development"
    assert result.file_name == "collector.py"
    assert result.file_type == "py"
    assert result.language == "python"
    assert result.project_name == "focus-tracker"
    assert result.context == {"rule": "app"}


def test_domain_rule_wins_over_browser(classifier):
    result = classifier.classify(
        Sample("Google Chrome", "Pull requests", "https://www.github.com/org/repo", NOW)
    )
    assert result.domain == "github.com"
    assert result.category == "development"
    assert result.context == {"rule": "domain"}


def test_subdomain_falls_back_to_parent_domain(classifier):
    result = classifier.classify(Sample("Firefox", "Home", "https://old.reddit.com/r/python", NOW))
    assert result.domain == "old.reddit.com"
    assert result.category == "social_media"


def test_unknown_site_in_browser_is_browsing(classifier):
    result = classifier.classify(Sample("firefox", "News", "https://example.org", NOW))
    assert result.category == "browsing"
    assert result.project_name is None


def test_unknown_app_has_no_category(classifier):
    result = classifier.classify(Sample("Calculator", None, None, NOW))
    assert result.category is None
    assert result.context is None
    assert result.file_name is None


def test_custom_tables():
    classifier = Classifier(app_keywords={"calc": "math"}, domain_categories={})
    assert classifier.classify(Sample("Calculator", None, None, NOW)).category == "math"


@pytest.mark.parametrize(
    "app, title, expected",
    [
        ("chrome", "Inbox - Google Chrome", "Inbox"),
        ("msedge.exe", "Report and 3 more pages - Work - Microsoft Edge", "Report"),
        ("Code", "  main.py  -  focus  ", "main.py - focus"),
        ("Code", "   ", None),
    ],
)
def test_normalize_window_title(app, title, expected):
    assert normalize_window_title(app, title) == expected


def test_normalize_app_name():
    assert normalize_app_name("chrome.exe") == "chrome"
    assert normalize_app_name("  ") is None


@pytest.mark.parametrize(
    "url, domain",
    [
        ("https://www.example.com/path", "example.com"),
        ("docs.python.org/3/", "docs.python.org"),
        ("", None),
        (None, None),
    ],
)
def test_extract_domain(url, domain):
    assert extract_domain(url) == domain
