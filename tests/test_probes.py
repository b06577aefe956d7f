"""Tests for the platform window sources, with the OS commands faked."""

import logging
import subprocess
from datetime import datetime

import pytest

from focus_tracker import probes
from focus_tracker.classifier import Classifier

NOW = datetime(2026, 3, 10, 9, 0)


class FakeOsascript:
    def __init__(self, replies):
        self.replies = replies
        self.scripts = []

    def __call__(self, script):
        self.scripts.append(script)
        for needle, reply in self.replies.items():
            if needle in script:
                if isinstance(reply, Exception):
                    raise reply
                return reply
        raise AssertionError(f"unexpected script: {script}")


@pytest.fixture
def mac_source():
    return probes.MacWindowSource(clock=lambda: NOW)


def test_browser_sample_carries_front_tab_url(monkeypatch, mac_source):
    fake = FakeOsascript(
        {
            "System Events": "Google Chrome\nfront page of the internet - Google Chrome\n",
            'application "Google Chrome"': "https://www.reddit.com/r/python\n",
        }
    )
    monkeypatch.setattr(probes, "_osascript", fake)

    sample = mac_source.poll()

    assert sample.app_name == "Google Chrome"
    assert sample.window_title == "front page of the internet"
    assert sample.url == "https://www.reddit.com/r/python"
    classification = Classifier().classify(sample)
    assert classification.domain == "reddit.com"
    assert classification.category == "social_media"


def test_safari_uses_front_document(monkeypatch, mac_source):
    fake = FakeOsascript(
        {
            "System Events": "Safari\nDocs\n",
            "front document": "https://docs.python.org/3/\n",
        }
    )
    monkeypatch.setattr(probes, "_osascript", fake)
    assert mac_source.poll().url == "https://docs.python.org/3/"


def test_non_browser_skips_url_lookup(monkeypatch, mac_source):
    fake = FakeOsascript({"System Events": "Terminal\nzsh\n"})
    monkeypatch.setattr(probes, "_osascript", fake)

    sample = mac_source.poll()

    assert sample.url is None
    assert len(fake.scripts) == 1


def test_url_lookup_failure_still_yields_sample(monkeypatch, mac_source):
    fake = FakeOsascript(
        {
            "System Events": "Safari\nDocs\n",
            "front document": subprocess.CalledProcessError(1, "osascript"),
        }
    )
    monkeypatch.setattr(probes, "_osascript", fake)

    sample = mac_source.poll()

    assert sample.app_name == "Safari"
    assert sample.url is None


def test_front_app_failure_is_logged(monkeypatch, mac_source, caplog):
    fake = FakeOsascript({"System Events": subprocess.TimeoutExpired("osascript", 2)})
    monkeypatch.setattr(probes, "_osascript", fake)

    with caplog.at_level(logging.ERROR, logger="focus_tracker.probes"):
        assert mac_source.poll() is None
    assert "osascript query failed" in caplog.text


def test_x11_without_focused_window_is_not_an_error(monkeypatch, caplog):
    def no_window(*args, **kwargs):
        raise subprocess.CalledProcessError(1, args[0])

    monkeypatch.setattr(probes.subprocess, "check_output", no_window)

    with caplog.at_level(logging.ERROR, logger="focus_tracker.probes"):
        assert probes.X11WindowSource(clock=lambda: NOW).poll() is None
    assert caplog.records == []


def test_wayland_session_has_no_window_source(monkeypatch):
    monkeypatch.setattr(probes.sys, "platform", "linux")
    monkeypatch.setenv("WAYLAND_DISPLAY", "wayland-0")
    source = probes.create_window_source()
    assert isinstance(source, probes.UnsupportedWindowSource)
    assert source.poll() is None
