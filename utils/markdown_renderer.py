#!/usr/bin/env python3
from __future__ import annotations

import re
from datetime import datetime
from typing import List, Optional, Sequence

from utils.commit_models import CommitRef
from utils.prompt_builder import CHANGELOG_CATEGORIES, format_date

FAILED_BODY = "Failed to generate changelog."

_FENCE_RE = re.compile(r"^\s*```[A-Za-z0-9_-]*\s*\n(.*?)\n\s*```\s*$", re.DOTALL)
_SHORT_SHA_RE = re.compile(r"\b[0-9a-f]{7,40}\b")


def strip_fences(text: str) -> str:
	"""Remove a code fence wrapped around the whole answer, if any."""
	if not text:
		return ""
	m = _FENCE_RE.match(text)
	if m:
		return m.group(1).strip()
	return text.strip()


def fallback_document(latest: Optional[datetime] = None) -> str:
	"""Minimal changelog used when the generator produced nothing usable."""
	heading = f"# Changelog – {format_date(latest)}" if latest else "# Changelog"
	return f"{heading}\n\n{FAILED_BODY}\n"


def inspect_draft(markdown: str, commits: Sequence[CommitRef]) -> List[str]:
	"""Return warnings about a generated draft; never rejects it.

	Checks for a top-level heading, section headings outside the fixed
	categories, and bullets that cite no known commit.
	"""
	warnings: List[str] = []
	lines = (markdown or "").splitlines()
	if not any(line.startswith("# ") for line in lines):
		warnings.append("missing top-level heading")

	allowed = {c.lower() for c in CHANGELOG_CATEGORIES}
	for line in lines:
		if line.startswith("## "):
			name = line[3:].strip().strip("*").strip()
			if name.lower() not in allowed:
				warnings.append(f"unknown category: {name}")

	known = {c.short_sha for c in commits}
	for line in lines:
		stripped = line.lstrip()
		if not stripped.startswith(("- ", "* ")):
			continue
		cited = {tok[:7] for tok in _SHORT_SHA_RE.findall(stripped)}
		if not cited & known:
			warnings.append(f"bullet without commit citation: {stripped[:60]}")
	return warnings
