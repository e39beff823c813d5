#!/usr/bin/env python3
"""Range specifications: the three ways a caller can name a commit range.

A request selects exactly one of ``date``, ``tag`` or ``sha`` mode. The union
is discriminated on ``mode`` and each variant forbids fields that belong to
another mode, so a stray ``base`` in date mode is rejected instead of ignored.
"""

from datetime import date, datetime, time, timezone
from typing import Annotated, Any, Dict, FrozenSet, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, ValidationInfo, constr, field_validator, model_validator

from utils.commit_models import CommitRef, short_sha
from utils.errors import RequestValidationError


HEAD = "HEAD"

RangeMode = Literal["date", "tag", "sha"]
RANGE_MODES = ("date", "tag", "sha")

NonEmptyStr = constr(strip_whitespace=True, min_length=1)


class _StrictModel(BaseModel):
	model_config = ConfigDict(extra="forbid", frozen=True)


def parse_window_edge(value: str, edge: str) -> datetime:
	"""Parse a window edge given as YYYY-MM-DD or an ISO 8601 timestamp.

	A bare date covers the whole day: midnight for the start edge, the last
	second of the day for the end edge. Naive timestamps are taken as UTC.
	"""
	try:
		day = date.fromisoformat(value)
	except ValueError:
		day = None
	if day is not None:
		clock = time.min if edge == "start" else time(23, 59, 59)
		return datetime.combine(day, clock, tzinfo=timezone.utc)
	try:
		parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
	except ValueError:
		raise ValueError(f"'{value}' is not a YYYY-MM-DD date or ISO 8601 timestamp") from None
	return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class DateRange(_StrictModel):
	"""Commits authored inside a calendar window on a branch."""

	mode: Literal["date"] = "date"
	start_date: NonEmptyStr
	end_date: NonEmptyStr

	@field_validator("start_date", "end_date")
	@classmethod
	def _check_date(cls, value: str, info: ValidationInfo) -> str:
		parse_window_edge(value, "start" if info.field_name == "start_date" else "end")
		return value

	@model_validator(mode="after")
	def _check_order(self) -> "DateRange":
		if parse_window_edge(self.start_date, "start") > parse_window_edge(self.end_date, "end"):
			raise ValueError(f"start date {self.start_date} is after end date {self.end_date}")
		return self

	def describe(self) -> str:
		return f"{self.start_date} to {self.end_date}"


class TagRange(_StrictModel):
	"""Commits between two tags; head defaults to the branch tip."""

	mode: Literal["tag"] = "tag"
	base_tag: NonEmptyStr
	head_tag: NonEmptyStr = HEAD

	def describe(self) -> str:
		return f"{self.base_tag}...{self.head_tag}"


class ShaRange(_StrictModel):
	"""Commits between two raw SHAs; values are passed through unresolved."""

	mode: Literal["sha"] = "sha"
	base_sha: NonEmptyStr
	head_sha: NonEmptyStr = HEAD

	def describe(self) -> str:
		return f"{short_sha(self.base_sha)}...{short_sha(self.head_sha) if self.head_sha != HEAD else HEAD}"


RangeSpec = Annotated[Union[DateRange, TagRange, ShaRange], Field(discriminator="mode")]

_RANGE_SPEC_ADAPTER = TypeAdapter(RangeSpec)

# flat request parameter -> variant field, per mode
_PARAM_FIELDS: Dict[str, Dict[str, str]] = {
	"date": {"start": "start_date", "end": "end_date"},
	"tag": {"base": "base_tag", "head": "head_tag"},
	"sha": {"base": "base_sha", "head": "head_sha"},
}


class ResolvedRange(BaseModel):
	"""Canonical range every mode converges to.

	``commits`` keeps the provider order (newest first) for drafting;
	``commit_shas`` is the order-independent key used for overlap checks.
	"""

	base_sha: str
	head_sha: str
	commits: List[CommitRef] = Field(default_factory=list)

	model_config = ConfigDict(frozen=True)

	@property
	def commit_shas(self) -> FrozenSet[str]:
		return frozenset(c.sha for c in self.commits)


def describe_validation_error(exc: ValidationError) -> str:
	parts = []
	for err in exc.errors():
		loc = ".".join(str(p) for p in err.get("loc", ()) if p not in RANGE_MODES)
		parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
	return "; ".join(parts) or str(exc)


def parse_range_spec(data: Dict[str, Any]) -> Union[DateRange, TagRange, ShaRange]:
	"""Validate a mapping that already uses variant field names."""
	try:
		return _RANGE_SPEC_ADAPTER.validate_python(data)
	except ValidationError as e:
		raise RequestValidationError(
			f"Invalid {data.get('mode', 'range')} range: {describe_validation_error(e)}",
			context={"mode": data.get("mode")},
		) from e


def range_spec_from_params(
	mode: str,
	*,
	start: Optional[str] = None,
	end: Optional[str] = None,
	base: Optional[str] = None,
	head: Optional[str] = None,
) -> Union[DateRange, TagRange, ShaRange]:
	"""Map flat request parameters (start/end/base/head) onto a RangeSpec.

	Blank values count as absent. Parameters that do not belong to the
	selected mode are rejected.
	"""
	if mode not in _PARAM_FIELDS:
		raise RequestValidationError(
			f"Invalid mode: {mode!r}. Expected one of: {', '.join(RANGE_MODES)}",
			context={"mode": mode},
		)
	provided = {
		name: value.strip()
		for name, value in (("start", start), ("end", end), ("base", base), ("head", head))
		if isinstance(value, str) and value.strip()
	}
	fields = _PARAM_FIELDS[mode]
	stray = sorted(name for name in provided if name not in fields)
	if stray:
		raise RequestValidationError(
			f"Parameters not allowed in {mode} mode: {', '.join(stray)}",
			context={"mode": mode, "params": stray},
		)
	data: Dict[str, Any] = {"mode": mode}
	for name, field in fields.items():
		if name in provided:
			data[field] = provided[name]
	return parse_range_spec(data)
