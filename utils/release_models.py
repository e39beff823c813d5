#!/usr/bin/env python3
"""Pydantic models for published changelogs and the requests around them.

Python attributes are snake_case; the wire shape is camelCase
(``baseSha``, ``commitShas``, ``publishedAt``). Both spellings are accepted
on input.
"""

from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Type, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, constr, field_serializer
from pydantic.alias_generators import to_camel

from configs.config import Config
from utils.commit_models import short_sha
from utils.errors import RequestValidationError
from utils.range_models import (
    DateRange,
    RangeMode,
    ShaRange,
    TagRange,
    describe_validation_error,
    range_spec_from_params,
)


RepoName = constr(strip_whitespace=True, pattern=r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
NonEmptyStr = constr(strip_whitespace=True, min_length=1)

M = TypeVar("M", bound=BaseModel)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _default_branch() -> str:
    return Config.DEFAULT_BRANCH


def _date_part(value: Optional[str]) -> str:
    if not value:
        return "unknown"
    return value.split("T")[0]


class OriginalParams(_WireModel):
    """Range parameters exactly as the caller typed them (kept for display)."""

    start: Optional[str] = None
    end: Optional[str] = None
    base: Optional[str] = None
    head: Optional[str] = None


class NewRelease(_WireModel):
    """A changelog ready to be persisted; id and publish time are assigned by the store."""

    repo: RepoName
    branch: NonEmptyStr
    mode: RangeMode
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    base_sha: NonEmptyStr
    head_sha: NonEmptyStr
    base_tag: Optional[str] = None
    head_tag: Optional[str] = None
    markdown: constr(min_length=1)
    commit_shas: FrozenSet[NonEmptyStr] = Field(..., min_length=1)

    @field_serializer("commit_shas")
    def _serialize_shas(self, shas: FrozenSet[str]) -> List[str]:
        return sorted(shas)


class PublicRelease(_WireModel):
    """Public shape of a published changelog."""

    id: str
    repo: str
    tag: Optional[str] = None
    range: str
    published_at: datetime
    markdown: str
    mode: RangeMode
    branch: str


class ReleaseRecord(NewRelease):
    """A persisted changelog. Only ``markdown`` may change after insert."""

    id: UUID
    published_at: datetime

    @classmethod
    def from_new(cls, new: NewRelease, *, id: UUID, published_at: datetime) -> "ReleaseRecord":
        return cls(**new.model_dump(), id=id, published_at=published_at)

    def range_display(self) -> str:
        if self.mode == "date":
            return f"{_date_part(self.start_date)} to {_date_part(self.end_date)}"
        if self.mode == "sha":
            return f"{short_sha(self.base_sha) or 'unknown'}...{short_sha(self.head_sha) or 'unknown'}"
        return f"{self.base_tag or 'unknown'}...{self.head_tag or 'unknown'}"

    def to_public(self) -> PublicRelease:
        return PublicRelease(
            id=str(self.id),
            repo=self.repo,
            tag=(self.head_tag or "unknown") if self.mode == "tag" else None,
            range=self.range_display(),
            published_at=self.published_at,
            markdown=self.markdown,
            mode=self.mode,
            branch=self.branch,
        )


class GenerateRequest(_WireModel):
    repo: RepoName
    branch: NonEmptyStr = Field(default_factory=_default_branch)
    mode: RangeMode
    start: Optional[str] = None
    end: Optional[str] = None
    base: Optional[str] = None
    head: Optional[str] = None

    def range_spec(self) -> Union[DateRange, TagRange, ShaRange]:
        return range_spec_from_params(self.mode, start=self.start, end=self.end, base=self.base, head=self.head)

    def original_params(self) -> OriginalParams:
        return OriginalParams(start=self.start, end=self.end, base=self.base, head=self.head)


class GenerateResult(_WireModel):
    """A draft awaiting review, with everything needed to publish it."""

    markdown: str
    repo: str
    branch: str
    mode: RangeMode
    base_sha: str
    head_sha: str
    commit_shas: List[str]
    original_params: Optional[OriginalParams] = None


class PublishRequest(_WireModel):
    repo: RepoName
    branch: NonEmptyStr = Field(default_factory=_default_branch)
    mode: RangeMode
    base_sha: NonEmptyStr
    head_sha: NonEmptyStr
    markdown: constr(min_length=1)
    commit_shas: List[NonEmptyStr] = Field(..., min_length=1)
    original_params: Optional[OriginalParams] = None

    def to_new_release(self) -> NewRelease:
        params = self.original_params or OriginalParams()
        is_tag = self.mode == "tag"
        return NewRelease(
            repo=self.repo,
            branch=self.branch,
            mode=self.mode,
            start_date=params.start or None,
            end_date=params.end or None,
            base_sha=self.base_sha,
            head_sha=self.head_sha,
            base_tag=(params.base or None) if is_tag else None,
            head_tag=(params.head or None) if is_tag else None,
            markdown=self.markdown,
            commit_shas=frozenset(self.commit_shas),
        )


class UpdateRequest(_WireModel):
    id: UUID
    markdown: constr(min_length=1)


class ListRequest(_WireModel):
    repo: RepoName
    branch: Optional[str] = None


class RecentChangelog(_WireModel):
    id: str
    published_at: datetime
    branch: str
    mode: RangeMode
    range: str
    markdown_preview: str


class RepoSummary(_WireModel):
    repo: str
    total_changelogs: int
    branches: List[str]
    most_recent_changelog: RecentChangelog


def markdown_preview(markdown: str, limit: Optional[int] = None) -> str:
    limit = Config.MARKDOWN_PREVIEW_CHARS if limit is None else limit
    if len(markdown) > limit:
        return markdown[:limit] + "..."
    return markdown


def summarize_repos(records: List[ReleaseRecord]) -> List[RepoSummary]:
    """Group published changelogs by repository, most recently active first."""
    groups: Dict[str, List[ReleaseRecord]] = {}
    for record in sorted(records, key=lambda r: r.published_at, reverse=True):
        groups.setdefault(record.repo, []).append(record)

    summaries = []
    for repo, releases in groups.items():
        latest = releases[0]
        summaries.append(
            RepoSummary(
                repo=repo,
                total_changelogs=len(releases),
                branches=list(dict.fromkeys(r.branch for r in releases)),
                most_recent_changelog=RecentChangelog(
                    id=str(latest.id),
                    published_at=latest.published_at,
                    branch=latest.branch,
                    mode=latest.mode,
                    range=latest.range_display(),
                    markdown_preview=markdown_preview(latest.markdown),
                ),
            )
        )
    summaries.sort(key=lambda s: s.most_recent_changelog.published_at, reverse=True)
    return summaries


def parse_request(model_cls: Type[M], payload: Dict[str, Any]) -> M:
    """Validate an inbound payload, surfacing failures as RequestValidationError."""
    try:
        return model_cls.model_validate(payload or {})
    except ValidationError as e:
        raise RequestValidationError(
            f"Invalid request data: {describe_validation_error(e)}",
            context={"request": model_cls.__name__},
        ) from e
