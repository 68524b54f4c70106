from __future__ import annotations

import logging
from collections.abc import Iterable

from .errors import DirectoryLookupError
from .models import Group


class Directory:
    """Read-only snapshot of groups and their members for one session."""

    def __init__(self, groups: Iterable[Group] = ()) -> None:
        self._groups = tuple(groups)

    @classmethod
    def empty(cls) -> Directory:
        return cls()

    @property
    def groups(self) -> tuple[Group, ...]:
        return self._groups

    def __len__(self) -> int:
        return len(self._groups)

    def find_group(self, name: str) -> Group | None:
        # Directory order decides when a person is listed in two groups.
        for group in self._groups:
            for member in group.members:
                if name == member.display_name or (member.full_name and name == member.full_name):
                    return group
        return None


async def load_directory(provider, logger: logging.Logger | None = None) -> Directory:
    """Fetch the directory once; on failure continue without group totals."""
    log = logger or logging.getLogger(__name__)
    try:
        groups = await provider.fetch_groups()
    except DirectoryLookupError as exc:
        log.warning("Group directory unavailable, skipping group aggregation: %s", exc)
        return Directory.empty()

    directory = Directory(groups)
    log.info("Loaded group directory with %d groups", len(directory))
    return directory
