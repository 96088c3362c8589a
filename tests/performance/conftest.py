"""
Performance test configuration.

Builds one large notes document per module so every measurement runs on
the same input.
"""

import os

import pytest

PERF_NOTE_COUNT = int(os.getenv("PERF_NOTE_COUNT", "50000"))


@pytest.fixture(scope="module")
def large_document(tmp_path_factory, build_notes):
    """
    A planet-style document with PERF_NOTE_COUNT notes of two comments each.

    Environment variables:
    - PERF_NOTE_COUNT: Number of notes to generate (default: 50000)
    """
    path = tmp_path_factory.mktemp("perf") / "planet-notes.xml"
    path.write_text(build_notes(PERF_NOTE_COUNT, comments=2), encoding="utf-8")
    yield path


@pytest.fixture(scope="module")
def perf_note_count() -> int:
    return PERF_NOTE_COUNT
