"""Shared pytest fixtures for the changelog agent tests."""

from __future__ import annotations

import socket
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from clients.bedrock_client import BedrockError
from clients.file_release_store import FileReleaseStore
from utils.commit_models import CommitRef
from utils.errors import NoCommitsInWindowError, NotFoundError
from utils.github_client import as_api_timestamp
from utils.range_models import HEAD


@pytest.fixture(autouse=True)
def _disable_network(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent network access during the test suite.

    GitHub, Bedrock and DynamoDB are all replaced by fakes; anything that
    still tries to open a socket is a bug in the test.
    """

    def _guard(*args: object, **kwargs: object) -> socket.socket:  # type: ignore[override]
        raise RuntimeError("Network access is disabled during tests.")

    monkeypatch.setattr(socket, "socket", _guard)
    monkeypatch.setattr(socket, "create_connection", _guard)


def sha(prefix: str) -> str:
    """Build a 40-char SHA by repeating a 2-char prefix, e.g. ``sha("a1")``."""
    return (prefix * 20)[:40]


def _parse(ts: str) -> datetime:
    return datetime.fromisoformat(ts.replace("Z", "+00:00"))


def make_commit(prefix: str, when: str, message: Optional[str] = None, author: str = "dev") -> CommitRef:
    return CommitRef(
        sha=sha(prefix),
        message=message or f"Change {prefix}",
        author_name=author,
        authored_at=_parse(when),
    )


class FakeHistory:
    """In-memory linear branch history with the GithubHistoryClient interface."""

    def __init__(self, commits: Sequence[CommitRef], tags: Optional[Dict[str, str]] = None,
                 branches: Sequence[str] = ("main",)) -> None:
        self.commits = list(commits)  # oldest first
        self.tags = dict(tags or {})
        self.branches = list(branches)
        self.calls: List[tuple] = []
        self.closed = False

    def _index(self, commit_sha: str) -> int:
        for i, commit in enumerate(self.commits):
            if commit.sha == commit_sha:
                return i
        raise NotFoundError("Commit not found", context={"sha": commit_sha})

    def resolve_tag_to_sha(self, repo: str, tag: str) -> str:
        self.calls.append(("tag", tag))
        if tag not in self.tags:
            raise NotFoundError(f"Tag '{tag}' not found", context={"repo": repo, "tag": tag})
        return self.tags[tag]

    def find_boundary_commit_sha_by_date(self, repo: str, branch: str, date: str, edge: str) -> str:
        self.calls.append(("boundary", date, edge))
        ts = _parse(as_api_timestamp(date, edge))
        if edge == "start":
            window = [c for c in self.commits if c.authored_at >= ts]
            picked = window[0] if window else None
        else:
            window = [c for c in self.commits if c.authored_at <= ts]
            picked = window[-1] if window else None
        if picked is None:
            raise NoCommitsInWindowError("No commits found", context={"repo": repo, "branch": branch, "edge": edge})
        return picked.sha

    def diff_commits(self, repo: str, base_sha: str, head_sha: str, branch: Optional[str] = None) -> List[CommitRef]:
        self.calls.append(("diff", base_sha, head_sha, branch))
        base_idx = self._index(base_sha)
        head_idx = len(self.commits) - 1 if head_sha in (HEAD, branch) else self._index(head_sha)
        return list(reversed(self.commits[base_idx + 1:head_idx + 1]))

    def list_tags(self, repo: str) -> List[str]:
        return sorted(self.tags)

    def list_branches(self, repo: str) -> List[str]:
        return list(self.branches)

    def close(self) -> None:
        self.closed = True


class FakeBedrock:
    """Stands in for BedrockClient; returns canned text or raises."""

    def __init__(self, text: str = "", error: Optional[BedrockError] = None,
                 responder: Optional[Callable[[str], str]] = None) -> None:
        self.text = text
        self.error = error
        self.responder = responder
        self.prompts: List[str] = []
        self.systems: List[Optional[str]] = []

    def complete(self, prompt: str, *, system: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        self.systems.append(system)
        if self.error is not None:
            raise self.error
        if self.responder is not None:
            return self.responder(prompt)
        return self.text


class DummyResponse:
    def __init__(self, status_code: int, json_data: Any = None, *, raise_json: bool = False) -> None:
        self.status_code = status_code
        self._json = json_data
        self._raise_json = raise_json

    def json(self) -> Any:
        if self._raise_json:
            raise ValueError("not json")
        return self._json


class FakeSession:
    """Routes GET requests by path; each route holds a list of responses served in order."""

    def __init__(self, routes: Dict[str, List[Any]]) -> None:
        self.routes = {path: list(responses) for path, responses in routes.items()}
        self.headers: Dict[str, str] = {}
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, timeout: Any = None) -> DummyResponse:
        path = url.split("://", 1)[-1].split("/", 1)[-1]
        path = "/" + path
        self.calls.append({"path": path, "params": dict(params or {}), "timeout": timeout})
        responses = self.routes.get(path)
        if not responses:
            raise AssertionError(f"No response configured for {path}")
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def release_store(tmp_path) -> FileReleaseStore:
    return FileReleaseStore(root_dir=str(tmp_path / "releases"))
