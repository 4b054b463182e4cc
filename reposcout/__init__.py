"""reposcout package initialization."""

from __future__ import annotations

from .api import (
    QueryResponse,
    RepoScoutClient,
    RepoScoutError,
    search,
    set_config_dir,
    set_data_dir,
)

__all__ = [
    "__version__",
    "QueryResponse",
    "RepoScoutClient",
    "RepoScoutError",
    "get_version",
    "search",
    "set_config_dir",
    "set_data_dir",
]

__version__ = "0.3.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
