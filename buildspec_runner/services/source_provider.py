"""
Source Provider
===============
Yields the host path of the project that gets mounted into the build
container. The runner only ever reads this path.
"""
import os


class FolderSourceProvider:
    """Source provider backed by a local directory (relative or absolute)."""

    def __init__(self, path: str):
        self._path = os.path.abspath(os.path.expanduser(path))

    @property
    def path(self) -> str:
        return self._path

    def __repr__(self) -> str:
        return f"FolderSourceProvider({self._path!r})"
