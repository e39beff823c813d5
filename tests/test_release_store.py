from __future__ import annotations

import uuid
from typing import Any, Dict, List

import pytest
from botocore.exceptions import ClientError
from pydantic import ValidationError

from clients.dynamo_release_store import DynamoReleaseStore
from clients.file_release_store import FileReleaseStore
from clients.release_store import build_release_store
from configs.config import Config
from conftest import sha
from utils.errors import NotFoundError, StorageError
from utils.release_models import NewRelease


def _new(repo: str = "octo/demo", branch: str = "main", shas=None, **overrides: Any) -> NewRelease:
    data: Dict[str, Any] = dict(
        repo=repo,
        branch=branch,
        mode="date",
        start_date="2024-01-01",
        end_date="2024-01-02",
        base_sha=sha("a0"),
        head_sha=sha("a3"),
        markdown="# Release v1.0.0 – 2024-01-02\n\n## Bug Fixes\n- Fixed it (a3a3a3a)",
        commit_shas=frozenset(shas or [sha("a1"), sha("a2"), sha("a3")]),
    )
    data.update(overrides)
    return NewRelease(**data)


def _client_error(code: str, operation: str = "PutItem") -> ClientError:
    return ClientError(
        error_response={"Error": {"Code": code, "Message": code.lower()}, "ResponseMetadata": {"RequestId": "req-1"}},
        operation_name=operation,
    )


class FakeTable:
    """Minimal DynamoDB Table double keyed by ``id``."""

    def __init__(self) -> None:
        self.items: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Dict[str, Any]] = []
        self.page_size = 2

    def put_item(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append({"op": "put_item", **kwargs})
        item = kwargs["Item"]
        if item["id"] in self.items:
            raise _client_error("ConditionalCheckFailedException")
        self.items[item["id"]] = dict(item)
        return {}

    def update_item(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append({"op": "update_item", **kwargs})
        key = kwargs["Key"]["id"]
        if key not in self.items:
            raise _client_error("ConditionalCheckFailedException", "UpdateItem")
        self.items[key]["markdown"] = kwargs["ExpressionAttributeValues"][":markdown"]
        return {"Attributes": dict(self.items[key])}

    def _page(self, items: List[Dict[str, Any]], start: Any) -> Dict[str, Any]:
        offset = int(start["offset"]) if start else 0
        chunk = items[offset:offset + self.page_size]
        response: Dict[str, Any] = {"Items": chunk}
        if offset + self.page_size < len(items):
            response["LastEvaluatedKey"] = {"offset": offset + self.page_size}
        return response

    def query(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append({"op": "query", **kwargs})
        repo = kwargs["KeyConditionExpression"].get_expression()["values"][1]
        items = [i for i in self.items.values() if i["repo"] == repo]
        flt = kwargs.get("FilterExpression")
        if flt is not None:
            branch = flt.get_expression()["values"][1]
            items = [i for i in items if i["branch"] == branch]
        items.sort(key=lambda i: i["published_at"], reverse=True)
        return self._page(items, kwargs.get("ExclusiveStartKey"))

    def scan(self, **kwargs: Any) -> Dict[str, Any]:
        self.calls.append({"op": "scan", **kwargs})
        return self._page(list(self.items.values()), kwargs.get("ExclusiveStartKey"))


@pytest.fixture(params=["file", "dynamodb"])
def store(request, tmp_path):
    if request.param == "file":
        return FileReleaseStore(root_dir=str(tmp_path / "releases"))
    return DynamoReleaseStore(table_name="release_slices", table_resource=FakeTable())


def test_insert_assigns_identity_and_keeps_commit_set(store) -> None:
    shas = [sha("a3"), sha("a1"), sha("a2")]
    record = store.insert(_new(shas=shas))

    assert isinstance(record.id, uuid.UUID)
    assert record.published_at.tzinfo is not None

    listed = store.list_by_repo("octo/demo", "main")
    assert len(listed) == 1
    assert listed[0].id == record.id
    assert listed[0].commit_shas == frozenset(shas)
    assert listed[0].start_date == "2024-01-01"


def test_list_by_repo_filters_scope_and_orders_newest_first(store) -> None:
    first = store.insert(_new(shas=[sha("a1")]))
    second = store.insert(_new(shas=[sha("a2")]))
    store.insert(_new(branch="release", shas=[sha("a3")]))
    store.insert(_new(repo="octo/other", shas=[sha("a4")]))

    on_main = store.list_by_repo("octo/demo", "main")
    assert [r.id for r in on_main] == [second.id, first.id]
    assert len(store.list_by_repo("octo/demo")) == 3
    assert len(store.list_all()) == 4


def test_update_markdown_changes_only_markdown(store) -> None:
    record = store.insert(_new())

    updated = store.update_markdown(record.id, "# Edited")

    assert updated.markdown == "# Edited"
    assert updated.commit_shas == record.commit_shas
    assert updated.published_at == record.published_at
    assert store.list_by_repo("octo/demo")[0].markdown == "# Edited"


def test_update_missing_release_is_not_found(store) -> None:
    with pytest.raises(NotFoundError):
        store.update_markdown(uuid.uuid4(), "# Nope")


def test_new_release_requires_commits() -> None:
    with pytest.raises(ValidationError):
        NewRelease(repo="octo/demo", branch="main", mode="sha", base_sha="x", head_sha="y",
                   markdown="# m", commit_shas=frozenset())


def test_file_store_writes_one_document_per_release(tmp_path) -> None:
    store = FileReleaseStore(root_dir=str(tmp_path))
    record = store.insert(_new())

    path = tmp_path / "octo#demo" / f"{record.id}.json"
    assert path.exists()
    assert '"commitShas"' in path.read_text(encoding="utf-8")
    assert not list(tmp_path.glob("**/.tmp_*"))


def test_file_store_surfaces_corrupt_records(tmp_path) -> None:
    store = FileReleaseStore(root_dir=str(tmp_path))
    (tmp_path / "octo#demo").mkdir()
    (tmp_path / "octo#demo" / "broken.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError):
        store.list_by_repo("octo/demo")


def test_dynamo_store_uses_conditional_writes_and_index() -> None:
    table = FakeTable()
    store = DynamoReleaseStore(table_name="release_slices", table_resource=table)

    store.insert(_new())
    store.list_by_repo("octo/demo", "main")

    put = next(c for c in table.calls if c["op"] == "put_item")
    assert put["ConditionExpression"].get_expression()["format"] == "attribute_not_exists({0})"
    assert isinstance(put["Item"]["commit_shas"], set)
    query = next(c for c in table.calls if c["op"] == "query")
    assert query["IndexName"] == "RepoPublishedIndex"
    assert query["ScanIndexForward"] is False


def test_dynamo_client_error_becomes_storage_error() -> None:
    class BrokenTable(FakeTable):
        def query(self, **kwargs: Any) -> Dict[str, Any]:
            raise _client_error("ProvisionedThroughputExceededException", "Query")

    store = DynamoReleaseStore(table_name="release_slices", table_resource=BrokenTable())

    with pytest.raises(StorageError) as excinfo:
        store.list_by_repo("octo/demo")
    assert excinfo.value.context["table"] == "release_slices"
    assert excinfo.value.context["code"] == "ProvisionedThroughputExceededException"
    assert excinfo.value.context["request_id"] == "req-1"


def test_build_release_store_selects_backend(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(Config, "RELEASE_STORE_ROOT", str(tmp_path))
    assert isinstance(build_release_store("file"), FileReleaseStore)
    with pytest.raises(ValueError):
        build_release_store("sqlite")
