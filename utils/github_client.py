#!/usr/bin/env python3
"""GitHub REST client for commit history lookups.

This module resolves tags to commits, finds the boundary commits of a date
window on a branch, and diffs two commits into an ordered commit list. HTTP
failures are mapped onto the typed errors in ``utils.errors``.
"""

import logging
import re
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from configs.config import Config
from utils.commit_models import CommitRef
from utils.errors import (
    NoCommitsInWindowError,
    NotFoundError,
    RequestValidationError,
    TooManyPagesError,
    UpstreamError,
)
from utils.range_models import HEAD

# Set up logging
logger = logging.getLogger(__name__)

Edge = Literal["start", "end"]

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def as_api_timestamp(value: str, edge: Edge) -> str:
    """Expand a bare date to an inclusive ISO 8601 timestamp for the given edge."""
    value = value.strip()
    if _DATE_ONLY_RE.match(value):
        return f"{value}T00:00:00Z" if edge == "start" else f"{value}T23:59:59Z"
    return value


class GithubHistoryClient:
    """Commit history provider backed by the GitHub REST API."""

    def __init__(
        self,
        token: Optional[str] = None,
        timeout_s: Optional[int] = None,
        *,
        session: Optional[requests.Session] = None,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
    ):
        """Initialize the GitHub history client.

        Args:
            token: GitHub Personal Access Token (defaults to Config.GITHUB_TOKEN)
            timeout_s: Request timeout in seconds (defaults to Config.HTTP_TIMEOUT_S)
            session: Pre-built session, mainly for tests
            page_size: Commits per page when scanning history
            max_pages: Maximum pages scanned before giving up with TooManyPagesError
        """
        github_config = Config.get_github_config()
        history_config = Config.get_history_config()
        self.token = token or github_config["token"]
        self.timeout_s = timeout_s or github_config["timeout_s"]
        self.base_url = github_config["base_url"]
        self.page_size = page_size or history_config["page_size"]
        self.max_pages = max_pages or history_config["max_pages"]
        self.tag_max_depth = history_config["tag_max_depth"]

        if session is None:
            session = requests.Session()
            # Transport retries stay at zero unless explicitly configured
            retry_strategy = Retry(
                total=github_config["retries"],
                status_forcelist=[429, 500, 502, 503, 504],
                backoff_factor=1,
                allowed_methods=["HEAD", "GET", "OPTIONS"],
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("https://", adapter)
        self.session = session
        self.session.headers.update({
            'Accept': 'application/vnd.github.v3+json',
            'User-Agent': 'changelog-agent/1.0'
        })
        if self.token:
            self.session.headers['Authorization'] = f'token {self.token}'
        else:
            logger.warning("No GitHub token configured; requests are unauthenticated and heavily rate limited")

        logger.info("GitHub history client initialized")

    def resolve_tag_to_sha(self, repo: str, tag: str) -> str:
        """Resolve a tag name to the SHA of the commit it points at.

        Lightweight tags reference the commit directly. Annotated tags reference
        a tag object which in turn references the commit, so the tag object is
        dereferenced until a commit is reached.

        Raises:
            NotFoundError: If the tag does not exist or does not lead to a commit
        """
        context = {"repo": repo, "tag": tag}
        ref = self._get(f"/repos/{repo}/git/ref/tags/{quote(tag, safe='/')}", context=context,
                        not_found=f"Tag '{tag}' not found in {repo}")
        obj = ref.get("object") or {}
        depth = 0
        while obj.get("type") == "tag":
            if depth >= self.tag_max_depth:
                raise NotFoundError(f"Tag '{tag}' nests more than {self.tag_max_depth} tag objects", context=context)
            tag_obj = self._get(f"/repos/{repo}/git/tags/{obj.get('sha')}", context=context,
                                not_found=f"Failed to resolve annotated tag '{tag}'")
            obj = tag_obj.get("object") or {}
            depth += 1

        if obj.get("type") != "commit" or not obj.get("sha"):
            raise NotFoundError(f"Tag '{tag}' does not point at a commit", context={**context, "type": obj.get("type")})
        logger.debug(f"✓ Resolved tag {tag} -> {obj['sha'][:7]} ({depth} tag object(s))")
        return obj["sha"]

    def find_boundary_commit_sha_by_date(self, repo: str, branch: str, date: str, edge: Edge) -> str:
        """Find the commit bounding a date window on a branch.

        For ``edge="start"`` this is the oldest commit at or after ``date``; for
        ``edge="end"`` the newest commit at or before ``date``. GitHub lists
        commits newest-first, so the start edge scans pages until the oldest one.

        Raises:
            NoCommitsInWindowError: If the window yields zero commits
            TooManyPagesError: If the scan exceeds ``max_pages`` pages
        """
        if edge not in ("start", "end"):
            raise RequestValidationError(f"Invalid boundary edge: {edge!r}")
        context = {"repo": repo, "branch": branch, "date": date, "edge": edge}
        params: Dict[str, Any] = {"sha": branch, "per_page": self.page_size}
        params["since" if edge == "start" else "until"] = as_api_timestamp(date, edge)

        logger.info(f"Looking up {edge} boundary for {repo}@{branch} at {date}")
        not_found = f"Repository {repo} or branch '{branch}' not found, or GitHub rejected the date {date}"
        path = f"/repos/{repo}/commits"
        if edge == "end":
            commits = self._get_list(path, params={**params, "page": 1}, context=context, not_found=not_found)
            if not commits:
                raise NoCommitsInWindowError(f"No commits found until {date} on branch '{branch}'", context=context)
            return commits[0]["sha"]

        oldest: Optional[Dict[str, Any]] = None
        for page in range(1, self.max_pages + 1):
            commits = self._get_list(path, params={**params, "page": page}, context=context, not_found=not_found)
            if commits:
                oldest = commits[-1]
            if len(commits) < self.page_size:
                break
        else:
            # the last allowed page was full; the history may end exactly there
            extra = self._get_list(path, params={**params, "page": self.max_pages + 1}, context=context,
                                   not_found=not_found)
            if extra:
                raise TooManyPagesError(
                    f"More than {self.max_pages * self.page_size} commits since {date} on branch '{branch}'; "
                    f"narrow the window or raise COMMITS_MAX_PAGES",
                    context={**context, "max_pages": self.max_pages, "page_size": self.page_size},
                )

        if oldest is None:
            raise NoCommitsInWindowError(f"No commits found since {date} on branch '{branch}'", context=context)
        return oldest["sha"]

    def diff_commits(self, repo: str, base_sha: str, head_sha: str, branch: Optional[str] = None) -> List[CommitRef]:
        """Return commits reachable from head but not from base, newest first.

        A head of ``HEAD`` is sent as the branch name when one is given, so the
        comparison follows the requested branch rather than the default branch.

        Raises:
            NotFoundError: If either endpoint is invalid or unreachable
            UpstreamError: On transport, auth or server failures
        """
        head_ref = branch if (head_sha == HEAD and branch) else head_sha
        context = {"repo": repo, "base": base_sha, "head": head_sha}
        path = f"/repos/{repo}/compare/{quote(base_sha, safe='/')}...{quote(head_ref, safe='/')}"
        logger.info(f"Comparing {repo} {base_sha}...{head_ref}")

        collected: List[Dict[str, Any]] = []
        total: Optional[int] = None
        for page in range(1, self.max_pages + 1):
            data = self._get(path, params={"per_page": self.page_size, "page": page}, context=context,
                             not_found="Repository not found or commit range not accessible")
            page_commits = data.get("commits") or []
            collected.extend(page_commits)
            total = data.get("total_commits", total)
            if len(page_commits) < self.page_size or (total is not None and len(collected) >= total):
                break
        else:
            raise TooManyPagesError(
                f"Comparison {base_sha}...{head_sha} spans more than {self.max_pages} pages of commits",
                context={**context, "total_commits": total},
            )

        # compare lists oldest first
        try:
            commits = [CommitRef.from_github(c) for c in reversed(collected)]
        except ValidationError as e:
            raise UpstreamError(
                "Unexpected GitHub commit payload",
                context={**context, "errors": e.error_count(), "detail": str(e.errors()[0].get("msg"))},
            ) from e
        logger.debug(f"✓ Retrieved {len(commits)} commits for {base_sha[:7]}...{head_sha[:7]}")
        return commits

    def list_tags(self, repo: str) -> List[str]:
        """Return tag names for a repository, as GitHub orders them."""
        tags = self._get_list(f"/repos/{repo}/tags", params={"per_page": self.page_size}, context={"repo": repo},
                              not_found="Repository not found or not accessible")
        return [t.get("name", "") for t in tags if t.get("name")]

    def list_branches(self, repo: str) -> List[str]:
        branches = self._get_list(f"/repos/{repo}/branches", params={"per_page": self.page_size}, context={"repo": repo},
                                  not_found="Repository not found or not accessible")
        return [b.get("name", "") for b in branches if b.get("name")]

    def close(self) -> None:
        self.session.close()
        logger.info("GitHub history client closed")

    # -------- HTTP helpers --------
    def _get(self, path: str, *, params: Optional[Dict[str, Any]] = None, context: Dict[str, Any],
             not_found: str = "Resource not found") -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout_s)
        except requests.Timeout as e:
            raise UpstreamError(f"Timeout while contacting GitHub ({self.timeout_s}s)", code="TIMEOUT", context=context) from e
        except requests.RequestException as e:
            raise UpstreamError(f"Network error while contacting GitHub: {e}", context=context) from e

        status = response.status_code
        if status in (404, 422):
            raise NotFoundError(not_found, context={**context, "status": status})
        if status in (401, 403):
            raise UpstreamError("Access denied. Please check your GitHub token and its scopes.",
                                code="UNAUTHORIZED", context={**context, "status": status})
        if status >= 400:
            raise UpstreamError(f"GitHub API error: HTTP {status}", context={**context, "status": status})
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError("GitHub returned a non-JSON response", context={**context, "status": status}) from e

    def _get_list(self, path: str, **kwargs: Any) -> List[Dict[str, Any]]:
        data = self._get(path, **kwargs)
        if not isinstance(data, list):
            raise UpstreamError("Unexpected GitHub response shape (expected a list)", context=kwargs.get("context", {}))
        return data
