#!/usr/bin/env python3
"""Overlap gate: a commit may appear in at most one published changelog per (repo, branch)."""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

from clients.release_store import ReleaseStore
from configs.config import Config
from utils.commit_models import short_sha
from utils.errors import OverlapConflictError

logger = logging.getLogger(__name__)

OVERLAP_MESSAGE = (
    "A changelog for this commit range already exists. "
    "Some commits have already been included in another changelog."
)


@dataclass(frozen=True)
class OverlapHit:
    """A published changelog sharing commits with the candidate set."""

    release_id: str
    shared_shas: FrozenSet[str]


class OverlapDetector:
    """Checks candidate commit SHAs against changelogs already published in scope.

    The scope is exact: same repository and same branch. Records on other
    branches never conflict, even when they contain the same commits.
    """

    def __init__(self, store: ReleaseStore):
        self.store = store

    def has_overlap(self, repo: str, branch: str, candidate_shas: Iterable[str]) -> bool:
        candidates = frozenset(candidate_shas)
        if not candidates:
            return False
        for record in self.store.list_by_repo(repo, branch):
            if not candidates.isdisjoint(record.commit_shas):
                logger.info(f"Overlap on {repo}@{branch}: candidate commits already in release {record.id}")
                return True
        return False

    def find_overlaps(self, repo: str, branch: str, candidate_shas: Iterable[str]) -> List[OverlapHit]:
        """Return every prior record in scope that shares at least one SHA."""
        candidates = frozenset(candidate_shas)
        hits: List[OverlapHit] = []
        if not candidates:
            return hits
        for record in self.store.list_by_repo(repo, branch):
            shared = candidates & record.commit_shas
            if shared:
                hits.append(OverlapHit(release_id=str(record.id), shared_shas=frozenset(shared)))
        return hits

    def ensure_no_overlap(
        self,
        repo: str,
        branch: str,
        candidate_shas: Iterable[str],
        *,
        sample_size: Optional[int] = None,
    ) -> None:
        """Raise OverlapConflictError if any candidate SHA is already published in scope."""
        hits = self.find_overlaps(repo, branch, candidate_shas)
        if not hits:
            logger.debug(f"No overlap on {repo}@{branch}")
            return
        limit = Config.OVERLAP_SAMPLE_SHAS if sample_size is None else sample_size
        shared = sorted(set().union(*(h.shared_shas for h in hits)))
        logger.warning(f"Overlap conflict on {repo}@{branch}: {len(shared)} commits in {len(hits)} published changelog(s)")
        raise OverlapConflictError(
            OVERLAP_MESSAGE,
            context={
                "repo": repo,
                "branch": branch,
                "release_ids": [h.release_id for h in hits],
                "shared_count": len(shared),
                "shared_shas": [short_sha(s) for s in shared[:limit]],
            },
        )


__all__ = ["OVERLAP_MESSAGE", "OverlapHit", "OverlapDetector"]
