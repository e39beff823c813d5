#!/usr/bin/env python3
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from utils.commit_models import CommitRef

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

CHANGELOG_CATEGORIES = ("New Features", "Improvements", "Bug Fixes", "Internal Changes")

SYSTEM_PROMPT = (
	"You are a technical writer producing precise, professional software changelogs "
	"from commit messages. Favour clarity, accuracy and technical detail."
)


def _render_template(template: str, mapping: Dict[str, str]) -> str:
	text = template
	for key, value in mapping.items():
		text = text.replace(f"{{{{ {key} }}}}", value)
	return text


def _bulleted(lines: List[str], *, max_lines: int = 500) -> str:
	if not lines:
		return "- none"
	out = []
	for line in lines[:max_lines]:
		line_clean = str(line).replace("\r", " ").replace("\n", " ")
		out.append(f"- {line_clean}")
	if len(lines) > max_lines:
		out.append(f"- ... {len(lines) - max_lines} more commits omitted")
	return "\n".join(out)


def format_date(value: datetime) -> str:
	return value.date().isoformat()


def load_template(name: str = "changelog.prompt") -> str:
	with open(PROMPTS_DIR / name, "r", encoding="utf-8") as f:
		return f.read()


def build_changelog_prompt(commits: Sequence[CommitRef]) -> Tuple[str, Dict[str, Any]]:
	"""Build the drafting prompt for a non-empty list of commits.

	Each commit contributes one line: short SHA, message title and author.
	The window shown to the model runs from the earliest to the latest
	authored date.

	Returns the prompt text and meta info for logging.
	"""
	if not commits:
		raise ValueError("No commits available for prompt")
	dates = [c.authored_at for c in commits]
	earliest, latest = min(dates), max(dates)
	lines = [f"{c.short_sha}: {c.title} ({c.author_name})" for c in commits]
	mapping = {
		"commit_count": str(len(commits)),
		"earliest_date": format_date(earliest),
		"latest_date": format_date(latest),
		"commit_lines": _bulleted(lines),
	}
	prompt = _render_template(load_template(), mapping)
	meta = {
		"commits": len(commits),
		"earliest": mapping["earliest_date"],
		"latest": mapping["latest_date"],
		"prompt_len": len(prompt),
	}
	return prompt, meta
