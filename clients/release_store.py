#!/usr/bin/env python3
"""Publication store contract and backend selection.

Published changelogs are append-only by intent: records are inserted once,
only their markdown may be edited afterwards, and nothing here deletes them.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from configs.config import Config
from utils.release_models import NewRelease, ReleaseRecord


class ReleaseStore:
	"""Interface shared by the file and DynamoDB backends."""

	def list_by_repo(self, repo: str, branch: Optional[str] = None) -> List[ReleaseRecord]:
		"""Return records for a repo (optionally one branch), newest first."""
		raise NotImplementedError

	def list_all(self) -> List[ReleaseRecord]:
		raise NotImplementedError

	def insert(self, new: NewRelease) -> ReleaseRecord:
		"""Persist a record, assigning its id and publication time."""
		raise NotImplementedError

	def update_markdown(self, release_id: UUID, markdown: str) -> ReleaseRecord:
		"""Replace the markdown of an existing record; commit SHAs are untouched."""
		raise NotImplementedError


def newest_first(records: List[ReleaseRecord]) -> List[ReleaseRecord]:
	return sorted(records, key=lambda r: r.published_at, reverse=True)


def build_release_store(backend: Optional[str] = None) -> ReleaseStore:
	cfg = Config.get_store_config()
	backend = (backend or cfg["backend"]).lower()
	if backend == "file":
		from clients.file_release_store import FileReleaseStore
		return FileReleaseStore(root_dir=cfg["root"])
	if backend == "dynamodb":
		from clients.dynamo_release_store import DynamoReleaseStore
		return DynamoReleaseStore(table_name=cfg["table_name"], region_name=cfg["region_name"], index_name=cfg["repo_index"])
	raise ValueError(f"Unknown release store backend: {backend!r} (expected 'file' or 'dynamodb')")
