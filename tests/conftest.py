"""Shared pytest fixtures for cartograph tests."""

import json
import subprocess
from unittest.mock import patch

import pytest

from cartograph.config import Config
from cartograph.config_schema import FormatterConfig
from cartograph.core.project import Project


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that download the real mapdb",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring network access"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep developer environment variables out of the tests."""
    for key in (
        "CARTOGRAPH_CONFIG",
        "CARTOGRAPH_WORLD",
        "CARTOGRAPH_WORK_DIR",
        "CARTOGRAPH_OUTPUT_DIR",
        "CARTOGRAPH_REMOTE_URL",
        "CARTOGRAPH_FORMATTER",
        "CARTOGRAPH_FORMATTER_ENABLED",
        "CARTOGRAPH_BATCH_SIZE",
        "CARTOGRAPH_FORMATTER_TIMEOUT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def project(tmp_path):
    """Project whose work dir and tree live under tmp_path."""
    return Project(
        "gemstone",
        work_dir=tmp_path / "work",
        output_dir=tmp_path / "git",
    )


@pytest.fixture
def mock_config(tmp_path):
    """A Config pointing at tmp_path."""
    return Config(
        world="gemstone",
        work_dir=str(tmp_path / "work"),
        output_dir=str(tmp_path / "git"),
    )


@pytest.fixture
def formatter_settings():
    return FormatterConfig(batch_size=2, timeout=5)


@pytest.fixture
def sample_rooms():
    """Three rooms: plain, with a wayto StringProc, with both kinds."""
    return [
        {
            "id": 1,
            "title": ["[Town Square]"],
            "wayto": {"2": ";e puts 'hi'", "3": "north"},
            "timeto": {"2": 0.2, "3": 0.2},
        },
        {
            "id": 2,
            "title": ["[Market]"],
            "wayto": {"1": "south"},
            "timeto": {"1": 0.2},
        },
        {
            "id": 3,
            "title": ["[Gate]"],
            "wayto": {"1": ";e  fput 'go gate'  "},
            "timeto": {"1": ";e Map.dijkstra(1) ? 5 : nil"},
        },
    ]


@pytest.fixture
def write_mapdb(tmp_path):
    """Write a list of rooms to a mapdb file and return its path."""

    def _write(rooms, name="map.json"):
        path = tmp_path / name
        path.write_text(json.dumps(rooms), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def clean_formatter():
    """Patch the formatter process to succeed with no findings."""
    completed = subprocess.CompletedProcess(
        args=[], returncode=0, stdout="", stderr=""
    )
    with patch(
        "cartograph.sync.batch.subprocess.run", return_value=completed
    ) as mock_run:
        yield mock_run
