#!/usr/bin/env python3
"""Pydantic models for commits returned by the history provider.

Commits are immutable snapshots of what GitHub reports; only their SHAs
outlive a request (as part of a published changelog).
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


SHORT_SHA_LEN = 7


class CommitRef(BaseModel):
    """A single commit between the base and head of a range."""

    sha: str = Field(..., pattern=r"^[0-9a-f]{40}$", description="Full commit SHA")
    message: str = Field("", description="Full commit message")
    author_name: str = Field("unknown", description="Commit author name")
    authored_at: datetime = Field(..., description="Author timestamp")

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def short_sha(self) -> str:
        return short_sha(self.sha)

    @property
    def title(self) -> str:
        return extract_first_line(self.message)

    @classmethod
    def from_github(cls, payload: Dict[str, Any]) -> "CommitRef":
        """Build a CommitRef from a GitHub commit object (list or compare API)."""
        commit_info = payload.get("commit") or {}
        return cls(
            sha=payload.get("sha", ""),
            message=commit_info.get("message", ""),
            author_name=safe_extract(commit_info, "author", "name", default=None) or "unknown",
            authored_at=safe_extract(commit_info, "author", "date"),
        )


def short_sha(sha: Optional[str]) -> str:
    return (sha or "")[:SHORT_SHA_LEN]


def extract_first_line(message: str) -> str:
    """Extract the first line of a commit message.

    Args:
        message: Full commit message

    Returns:
        First line of the message, stripped of whitespace
    """
    if not message:
        return ""

    lines = message.splitlines()
    return lines[0].strip() if lines else ""


def safe_extract(data: Dict, *keys, default=None):
    """Safely extract nested dictionary values.

    Example:
        safe_extract(commit, "author", "date")
        # Equivalent to commit.get("author", {}).get("date")
    """
    current = data
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current
