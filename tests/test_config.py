"""Tests for cloner.config module."""

from __future__ import annotations

import pytest

from cloner.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    CloneOptions,
    OptionOverrides,
    _apply_overrides,
    build_clone_options,
    default_output_dir,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "SITECLONE_CONCURRENCY",
        "SITECLONE_TIMEOUT",
        "SITECLONE_USER_AGENT",
        "SITECLONE_OUTPUT_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


class TestCloneOptions:
    def test_defaults(self):
        o = CloneOptions()
        assert o.include_images and o.include_fonts and o.include_js
        assert o.follow_subdomains is False
        assert o.max_depth == 3
        assert o.concurrency == DEFAULT_CONCURRENCY
        assert o.timeout == DEFAULT_TIMEOUT


class TestApplyOverrides:
    def test_none_values_ignored(self):
        options = _apply_overrides(CloneOptions(), OptionOverrides())
        assert options == CloneOptions()

    def test_values_applied(self):
        options = _apply_overrides(
            CloneOptions(),
            OptionOverrides(include_images=False, concurrency=2, timeout=1.5),
        )
        assert options.include_images is False
        assert options.concurrency == 2
        assert options.timeout == 1.5

    def test_invalid_values_ignored(self):
        options = _apply_overrides(
            CloneOptions(), OptionOverrides(concurrency=0, timeout=-1)
        )
        assert options.concurrency == DEFAULT_CONCURRENCY
        assert options.timeout == DEFAULT_TIMEOUT


class TestBuildCloneOptions:
    def test_defaults(self):
        options = build_clone_options()
        assert options.concurrency == DEFAULT_CONCURRENCY
        assert options.user_agent == DEFAULT_USER_AGENT

    def test_env(self, monkeypatch):
        monkeypatch.setenv("SITECLONE_CONCURRENCY", "4")
        monkeypatch.setenv("SITECLONE_TIMEOUT", "2.5")
        monkeypatch.setenv("SITECLONE_USER_AGENT", "ua/1")
        options = build_clone_options()
        assert options.concurrency == 4
        assert options.timeout == 2.5
        assert options.user_agent == "ua/1"

    def test_bad_env_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv("SITECLONE_CONCURRENCY", "many")
        monkeypatch.setenv("SITECLONE_TIMEOUT", "0")
        options = build_clone_options()
        assert options.concurrency == DEFAULT_CONCURRENCY
        assert options.timeout == DEFAULT_TIMEOUT
        assert "SITECLONE_CONCURRENCY" in caplog.text

    def test_overrides_beat_env(self, monkeypatch):
        monkeypatch.setenv("SITECLONE_CONCURRENCY", "4")
        options = build_clone_options(OptionOverrides(concurrency=6))
        assert options.concurrency == 6


class TestDefaultOutputDir:
    def test_default(self):
        assert default_output_dir() == "."

    def test_env(self, monkeypatch):
        monkeypatch.setenv("SITECLONE_OUTPUT_DIR", "/tmp/clones")
        assert default_output_dir() == "/tmp/clones"
