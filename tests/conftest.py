"""
Pytest configuration and fixtures for notes ingestion tests.
Provides notes document builders and test environment defaults.
"""

import os
from pathlib import Path

import pytest

ENV_VARS = (
    "MAX_THREADS",
    "PARALLEL_PROCESS_DELAY",
    "PROCESS_TIMEOUT",
    "MAX_ATTEMPTS",
    "RETRY_DELAY",
    "MIN_NOTES_FOR_PARALLEL",
    "BINARY_THRESHOLD_MB",
    "MAX_MEMORY_PERCENT",
    "MAX_LOAD_AVERAGE",
    "OVERPASS_ENDPOINTS",
    "OVERPASS_RETRIES_PER_ENDPOINT",
    "OVERPASS_BACKOFF_SECONDS",
    "OVERPASS_DEADLINE_SECONDS",
    "MAX_FAILED_UNITS",
    "DBPORT",
    "DBNAME",
    "DB_USER",
    "DB_PASSWORD",
    "LOG_LEVEL",
    "LOG_FILE",
    "LOG_JSON",
    "LOG_CONSOLE",
    "OTLP_ENDPOINT",
    "TRACE_CONSOLE",
)


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as fast unit test")
    config.addinivalue_line("markers", "property: mark test as property-based test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def note_xml(note_id: int, comments: int = 1) -> str:
    """One planet-style note record."""
    lines = [
        f' <note id="{note_id}" lat="4.{note_id % 1000:03d}" lon="-74.{note_id % 997:03d}" '
        f'created_at="2013-04-24T20:27:37Z">'
    ]
    for c in range(comments):
        lines.append(
            f'  <comment action="{"opened" if c == 0 else "commented"}" '
            f'timestamp="2013-04-24T20:27:37Z" uid="{c + 1}" user="mapper{c}">'
            f"Note {note_id} &lt;comment {c}&gt;</comment>"
        )
    lines.append(" </note>")
    return "\n".join(lines)


def notes_xml(count: int, root: str = "osm-notes", comments: int = 1, start_id: int = 1) -> str:
    """A complete notes document with count records."""
    body = "\n".join(note_xml(start_id + i, comments) for i in range(count))
    attributes = ' version="0.6" generator="OpenStreetMap server"' if root == "osm" else ""
    parts = ['<?xml version="1.0" encoding="UTF-8"?>', f"<{root}{attributes}>"]
    if body:
        parts.append(body)
    parts.append(f"</{root}>")
    return "\n".join(parts) + "\n"


@pytest.fixture(scope="session")
def build_notes():
    """The notes_xml() document builder, for tests that write their own files."""
    return notes_xml


@pytest.fixture
def write_notes(tmp_path: Path):
    """Factory writing a notes document into tmp_path and returning its path."""

    def _write(count: int, name: str = "notes.xml", **kwargs) -> Path:
        path = tmp_path / name
        path.write_text(notes_xml(count, **kwargs), encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def clean_ingestion_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests independent of the caller's ingestion environment."""
    for key in ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DBHOST", os.environ.get("TEST_DBHOST", "localhost"))
