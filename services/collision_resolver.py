"""Collision-safe naming for files placed into managed storage."""

from __future__ import annotations

import logging
import posixpath
from typing import Callable

logger = logging.getLogger(__name__)


class CollisionResolver:
    """Append ``_1``, ``_2``, ... to a path's stem until it no longer exists.

    The counter is unbounded; a directory pre-populated with many colliding
    names makes resolution loop accordingly. Resolution and the subsequent
    move are not atomic, so two submissions resolving the same name at the
    same time can both pick it.
    """

    def __init__(self, exists: Callable[[str], bool]) -> None:
        self._exists = exists

    def resolve(self, candidate_path: str) -> str:
        if not self._exists(candidate_path):
            return candidate_path

        directory, filename = posixpath.split(candidate_path)
        stem, extension = posixpath.splitext(filename)

        index = 1
        while True:
            candidate = posixpath.join(directory, f"{stem}_{index}{extension}")
            if not self._exists(candidate):
                logger.debug("Resolved collision for %s after %d attempt(s): %s", candidate_path, index, candidate)
                return candidate
            index += 1
