"""CLDF archive engine (codec, integrity verifier, merge engine, CLID identifiers).

This package holds the in-memory climbing-log model and the on-disk contract.
Command dispatch and report formatting live outside of it.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version


def __getattr__(name: str):
    if name == "__version__":
        try:
            return version("cldf-archive")
        except PackageNotFoundError:
            return "0.0.0"
    raise AttributeError(name)
