"""Shared fixtures; the builders they use live in _builders."""

from __future__ import annotations

import pytest

from _builders import full_archive, minimal_archive
from cldf.models import Archive


@pytest.fixture()
def archive() -> Archive:
    return full_archive()


@pytest.fixture()
def small_archive() -> Archive:
    return minimal_archive()
