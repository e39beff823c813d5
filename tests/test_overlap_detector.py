from __future__ import annotations

import pytest

from conftest import sha
from utils.errors import OverlapConflictError
from utils.overlap_detector import OVERLAP_MESSAGE, OverlapDetector
from utils.release_models import NewRelease


REPO = "octo/demo"


def _publish(store, shas, branch: str = "main"):
    return store.insert(NewRelease(
        repo=REPO,
        branch=branch,
        mode="sha",
        base_sha=sha("00"),
        head_sha=shas[0],
        markdown="# Release",
        commit_shas=frozenset(shas),
    ))


def test_intersecting_sets_overlap_and_disjoint_sets_do_not(release_store) -> None:
    _publish(release_store, [sha("a1"), sha("a2"), sha("a3")])
    detector = OverlapDetector(release_store)

    assert detector.has_overlap(REPO, "main", [sha("a3"), sha("b1")])
    assert not detector.has_overlap(REPO, "main", [sha("c1"), sha("c2")])


def test_overlap_is_symmetric(tmp_path) -> None:
    from clients.file_release_store import FileReleaseStore

    a = [sha("a1"), sha("a2")]
    b = [sha("a2"), sha("b9")]
    store_a = FileReleaseStore(root_dir=str(tmp_path / "a"))
    store_b = FileReleaseStore(root_dir=str(tmp_path / "b"))
    _publish(store_a, a)
    _publish(store_b, b)

    assert OverlapDetector(store_a).has_overlap(REPO, "main", b)
    assert OverlapDetector(store_b).has_overlap(REPO, "main", a)


def test_scope_is_repo_and_branch(release_store) -> None:
    _publish(release_store, [sha("a1")], branch="release")
    detector = OverlapDetector(release_store)

    assert not detector.has_overlap(REPO, "main", [sha("a1")])
    assert not detector.has_overlap("octo/other", "release", [sha("a1")])
    assert detector.has_overlap(REPO, "release", [sha("a1")])


def test_empty_candidate_set_never_overlaps(release_store) -> None:
    _publish(release_store, [sha("a1")])
    assert not OverlapDetector(release_store).has_overlap(REPO, "main", [])


def test_find_overlaps_lists_each_conflicting_release(release_store) -> None:
    first = _publish(release_store, [sha("a1"), sha("a2")])
    second = _publish(release_store, [sha("a3")])
    _publish(release_store, [sha("a4")])

    hits = OverlapDetector(release_store).find_overlaps(REPO, "main", [sha("a2"), sha("a3"), sha("b1")])

    assert {h.release_id: h.shared_shas for h in hits} == {
        str(first.id): frozenset({sha("a2")}),
        str(second.id): frozenset({sha("a3")}),
    }


def test_ensure_no_overlap_explains_the_conflict(release_store) -> None:
    record = _publish(release_store, [sha("a1"), sha("a2"), sha("a3")])
    detector = OverlapDetector(release_store)

    with pytest.raises(OverlapConflictError) as excinfo:
        detector.ensure_no_overlap(REPO, "main", [sha("a2"), sha("a3"), sha("b9")], sample_size=1)

    err = excinfo.value
    assert str(err) == OVERLAP_MESSAGE
    assert err.status == 409
    assert err.context["release_ids"] == [str(record.id)]
    assert err.context["shared_count"] == 2
    assert err.context["shared_shas"] == [sha("a2")[:7]]


def test_ensure_no_overlap_passes_for_fresh_commits(release_store) -> None:
    _publish(release_store, [sha("a1")])
    OverlapDetector(release_store).ensure_no_overlap(REPO, "main", [sha("b1")])
