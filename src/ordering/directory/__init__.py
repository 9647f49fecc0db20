"""Store directory adapter registry.

Defaults to the projection-backed directory fed by Settlement events.
Tests install a FakeStoreDirectory with set_directory().
"""

import os

from ordering.directory.port import StoreDirectory

_current_directory: StoreDirectory | None = None


def get_directory() -> StoreDirectory:
    global _current_directory
    if _current_directory is None:
        adapter = os.environ.get("STORE_DIRECTORY_ADAPTER", "projection")
        if adapter == "projection":
            from ordering.directory.projection_adapter import ProjectionStoreDirectory

            _current_directory = ProjectionStoreDirectory()
        elif adapter == "fake":
            from ordering.directory.fake_adapter import FakeStoreDirectory

            _current_directory = FakeStoreDirectory()
        else:
            raise ValueError(f"Unknown store directory adapter: {adapter}")
    return _current_directory


def set_directory(directory: StoreDirectory) -> None:
    global _current_directory
    _current_directory = directory


def reset_directory() -> None:
    global _current_directory
    _current_directory = None
