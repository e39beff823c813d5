"""DynamoDB-backed store for published changelogs."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from clients.release_store import ReleaseStore, newest_first
from utils.errors import NotFoundError, StorageError
from utils.release_models import NewRelease, ReleaseRecord


logger = logging.getLogger(__name__)

_OPTIONAL_FIELDS = ("start_date", "end_date", "base_tag", "head_tag")


def _to_item(record: ReleaseRecord) -> Dict[str, Any]:
    item: Dict[str, Any] = {
        "id": str(record.id),
        "repo": record.repo,
        "branch": record.branch,
        "mode": record.mode,
        "base_sha": record.base_sha,
        "head_sha": record.head_sha,
        "markdown": record.markdown,
        # string set; never empty for a valid record
        "commit_shas": set(record.commit_shas),
        "published_at": record.published_at.isoformat(),
    }
    for field in _OPTIONAL_FIELDS:
        value = getattr(record, field)
        if value:
            item[field] = value
    return item


def _from_item(item: Dict[str, Any]) -> ReleaseRecord:
    return ReleaseRecord.model_validate(
        {**item, "commit_shas": list(item.get("commit_shas") or [])}
    )


class DynamoReleaseStore(ReleaseStore):
    """Store published changelogs in a single DynamoDB table.

    The table is keyed by ``id``; the ``RepoPublishedIndex`` GSI
    (``repo`` hash, ``published_at`` range) serves per-repo listings.
    """

    def __init__(
        self,
        *,
        table_name: str,
        region_name: Optional[str] = None,
        index_name: str = "RepoPublishedIndex",
        table_resource: Any | None = None,
    ) -> None:
        if not table_name:
            raise ValueError("DynamoDB table name is required")
        self.table_name = table_name
        self.index_name = index_name
        if table_resource is None:
            resource = boto3.resource("dynamodb", region_name=region_name)
            table_resource = resource.Table(table_name)
        self._table = table_resource

    # Public API -----------------------------------------------------
    def list_by_repo(self, repo: str, branch: Optional[str] = None) -> List[ReleaseRecord]:
        params: Dict[str, Any] = {
            "IndexName": self.index_name,
            "KeyConditionExpression": Key("repo").eq(repo),
            "ScanIndexForward": False,
        }
        if branch is not None:
            params["FilterExpression"] = Attr("branch").eq(branch)
        context = {"repo": repo, "branch": branch}
        items = self._collect(self._table.query, params, context=context)
        return newest_first([_from_item(item) for item in items])

    def list_all(self) -> List[ReleaseRecord]:
        items = self._collect(self._table.scan, {}, context={})
        return newest_first([_from_item(item) for item in items])

    def insert(self, new: NewRelease) -> ReleaseRecord:
        record = ReleaseRecord.from_new(new, id=uuid.uuid4(), published_at=datetime.now(timezone.utc))
        context = {"id": str(record.id), "repo": record.repo, "branch": record.branch}
        try:
            self._table.put_item(
                Item=_to_item(record),
                ConditionExpression=Attr("id").not_exists(),
            )
        except (ClientError, BotoCoreError) as exc:
            self._raise_storage_error(exc, "Failed to save changelog to database", context)
        logger.info(
            "Persisted release %s for %s@%s (%d commits)",
            record.id, record.repo, record.branch, len(record.commit_shas),
        )
        return record

    def update_markdown(self, release_id: UUID, markdown: str) -> ReleaseRecord:
        context = {"id": str(release_id)}
        try:
            response = self._table.update_item(
                Key={"id": str(release_id)},
                UpdateExpression="SET markdown = :markdown",
                ConditionExpression=Attr("id").exists(),
                ExpressionAttributeValues={":markdown": markdown},
                ReturnValues="ALL_NEW",
            )
        except ClientError as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                raise NotFoundError("Changelog not found", context=context) from exc
            self._raise_storage_error(exc, "Failed to update changelog", context)
        except BotoCoreError as exc:
            self._raise_storage_error(exc, "Failed to update changelog", context)
        logger.info("Updated markdown of release %s", release_id)
        return _from_item(response["Attributes"])

    # Internal helpers -----------------------------------------------
    def _collect(self, operation: Any, params: Dict[str, Any], *, context: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            return list(self._paginate(operation, params))
        except (ClientError, BotoCoreError) as exc:
            self._raise_storage_error(exc, "Failed to query release store", context)

    @staticmethod
    def _paginate(operation: Any, params: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
        params = dict(params)
        while True:
            response = operation(**params)
            for item in response.get("Items", []):
                yield item
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            params["ExclusiveStartKey"] = last_key

    def _raise_storage_error(self, error: Exception, message: str, context: Dict[str, Any]) -> None:
        details = {"table": self.table_name, **context}
        if isinstance(error, ClientError):
            details.update({
                "code": _error_code(error),
                "error_message": (error.response.get("Error", {}) or {}).get("Message"),
                "request_id": error.response.get("ResponseMetadata", {}).get("RequestId"),
            })
        else:
            details["error_message"] = str(error)
        logger.error("DynamoDB operation failed: %s", message, extra=details)
        raise StorageError(message, context=details) from error


def _error_code(error: ClientError) -> Optional[str]:
    return (error.response.get("Error", {}) or {}).get("Code")


__all__ = ["DynamoReleaseStore"]
