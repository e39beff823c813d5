#!/usr/bin/env python3
"""Range resolution: date, tag and SHA requests converge on one canonical range.

Collapsing the three input shapes into ``{base_sha, head_sha, commits}`` lets
overlap detection work without caring how the caller named the range.
"""

import logging
from typing import Tuple, Union

from utils.errors import EmptyRangeError, NoCommitsInWindowError
from utils.github_client import GithubHistoryClient
from utils.range_models import HEAD, DateRange, ResolvedRange, ShaRange, TagRange

logger = logging.getLogger(__name__)

AnyRange = Union[DateRange, TagRange, ShaRange]


def empty_range_message(spec: AnyRange, branch: str) -> str:
    """Mode-specific explanation for a range that holds no commits."""
    if isinstance(spec, DateRange):
        return f"No commits found between {spec.start_date} and {spec.end_date} on branch '{branch}'."
    if isinstance(spec, ShaRange):
        return f"No commits found between SHA '{spec.base_sha}' and '{spec.head_sha}' on branch '{branch}'."
    return f"No commits found between tag '{spec.base_tag}' and '{spec.head_tag}' on branch '{branch}'."


class RangeResolver:
    """Turns a RangeSpec into a ResolvedRange using a commit history provider."""

    def __init__(self, history: GithubHistoryClient):
        self.history = history

    def to_sha_range(self, repo: str, branch: str, spec: AnyRange) -> Tuple[str, str]:
        """Resolve a RangeSpec to its ``(base_sha, head_sha)`` pair.

        ``head_sha`` stays the literal ``HEAD`` when the caller left it open.
        """
        if isinstance(spec, DateRange):
            try:
                base_sha = self.history.find_boundary_commit_sha_by_date(repo, branch, spec.start_date, "start")
                head_sha = self.history.find_boundary_commit_sha_by_date(repo, branch, spec.end_date, "end")
            except NoCommitsInWindowError as e:
                raise EmptyRangeError(
                    empty_range_message(spec, branch),
                    context={"repo": repo, "branch": branch, "mode": spec.mode, "start": spec.start_date,
                             "end": spec.end_date, "edge": e.context.get("edge")},
                ) from e
        elif isinstance(spec, TagRange):
            base_sha = self.history.resolve_tag_to_sha(repo, spec.base_tag)
            head_sha = HEAD if spec.head_tag == HEAD else self.history.resolve_tag_to_sha(repo, spec.head_tag)
        else:
            base_sha, head_sha = spec.base_sha, spec.head_sha

        logger.info(f"Resolved {spec.mode} range {spec.describe()} on {repo}@{branch} to {base_sha[:7]}...{head_sha[:7]}")
        return base_sha, head_sha

    def resolve(self, repo: str, branch: str, spec: AnyRange) -> ResolvedRange:
        """Resolve a RangeSpec and fetch the commits it covers.

        Raises:
            EmptyRangeError: If the range holds zero commits
            NotFoundError: If a tag, commit or repository does not exist
            UpstreamError: On provider failures
        """
        base_sha, head_sha = self.to_sha_range(repo, branch, spec)
        commits = self.history.diff_commits(repo, base_sha, head_sha, branch=branch)
        if not commits:
            raise EmptyRangeError(
                empty_range_message(spec, branch),
                context={"repo": repo, "branch": branch, "mode": spec.mode, "range": spec.describe(),
                         "base_sha": base_sha, "head_sha": head_sha},
            )
        resolved = ResolvedRange(base_sha=base_sha, head_sha=head_sha, commits=commits)
        logger.info(f"✓ {len(resolved.commits)} commits in {spec.mode} range {spec.describe()}")
        return resolved
