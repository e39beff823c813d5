#!/usr/bin/env python3
from __future__ import annotations

import logging
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from uuid import UUID

from pydantic import ValidationError

from clients.release_store import ReleaseStore, newest_first
from configs.config import Config
from utils.errors import NotFoundError, StorageError
from utils.release_models import NewRelease, ReleaseRecord

logger = logging.getLogger(__name__)


def _safe_repo(repo: str) -> str:
	return repo.replace("/", "#").replace(os.sep, "#")


class FileReleaseStore(ReleaseStore):
	"""Local store keeping one JSON document per published changelog.

	Layout: ``<root>/<owner#name>/<id>.json``. Writes go through a temp file,
	fsync and ``os.replace`` so a record is either fully written or absent.
	"""

	def __init__(self, root_dir: Optional[str] = None) -> None:
		self.root_dir = Path(root_dir or Config.RELEASE_STORE_ROOT)
		try:
			self.root_dir.mkdir(parents=True, exist_ok=True)
		except OSError as e:
			raise StorageError(f"Cannot create release store at {self.root_dir}: {e}", context={"root": str(self.root_dir)}) from e

	def list_by_repo(self, repo: str, branch: Optional[str] = None) -> List[ReleaseRecord]:
		records = self._load_dir(self.root_dir / _safe_repo(repo))
		records = [r for r in records if r.repo == repo and (branch is None or r.branch == branch)]
		return newest_first(records)

	def list_all(self) -> List[ReleaseRecord]:
		records: List[ReleaseRecord] = []
		for repo_dir in sorted(p for p in self.root_dir.iterdir() if p.is_dir()):
			records.extend(self._load_dir(repo_dir))
		return newest_first(records)

	def insert(self, new: NewRelease) -> ReleaseRecord:
		record = ReleaseRecord.from_new(new, id=uuid.uuid4(), published_at=datetime.now(timezone.utc))
		path = self._path_for(record.repo, record.id)
		if path.exists():
			raise StorageError(f"Release {record.id} already exists", context={"id": str(record.id)})
		self._write(path, record)
		logger.info(f"Persisted release {record.id} for {record.repo}@{record.branch} ({len(record.commit_shas)} commits)")
		return record

	def update_markdown(self, release_id: UUID, markdown: str) -> ReleaseRecord:
		path = self._find(release_id)
		if path is None:
			raise NotFoundError("Changelog not found", context={"id": str(release_id)})
		record = self._read(path).model_copy(update={"markdown": markdown})
		self._write(path, record)
		logger.info(f"Updated markdown of release {release_id}")
		return record

	# -------- file helpers --------
	def _path_for(self, repo: str, release_id: UUID) -> Path:
		return self.root_dir / _safe_repo(repo) / f"{release_id}.json"

	def _find(self, release_id: UUID) -> Optional[Path]:
		matches = list(self.root_dir.glob(f"*/{release_id}.json"))
		return matches[0] if matches else None

	def _load_dir(self, repo_dir: Path) -> List[ReleaseRecord]:
		if not repo_dir.is_dir():
			return []
		return [self._read(p) for p in sorted(repo_dir.glob("*.json"))]

	def _read(self, path: Path) -> ReleaseRecord:
		try:
			return ReleaseRecord.model_validate_json(path.read_text(encoding="utf-8"))
		except (OSError, ValidationError) as e:
			raise StorageError(f"Unreadable release record {path.name}: {e}", context={"path": str(path)}) from e

	def _write(self, path: Path, record: ReleaseRecord) -> None:
		try:
			path.parent.mkdir(parents=True, exist_ok=True)
			tmp_fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp_", suffix=".json")
			with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
				f.write(record.model_dump_json(indent=2))
				f.flush()
				os.fsync(f.fileno())
			os.replace(tmp_path, path)
		except OSError as e:
			raise StorageError(f"Failed to save changelog to {path}: {e}", context={"path": str(path)}) from e
