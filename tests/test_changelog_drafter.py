from __future__ import annotations

import json
import logging

import pytest

from clients.bedrock_client import BedrockClient, BedrockError
from conftest import FakeBedrock, make_commit
from utils.changelog_drafter import ChangelogDrafter
from utils.errors import GenerationError, RequestValidationError
from utils.markdown_renderer import FAILED_BODY, inspect_draft, strip_fences
from utils.prompt_builder import SYSTEM_PROMPT, build_changelog_prompt


COMMITS = [
    make_commit("a3", "2024-01-02T11:00:00Z", "fix: handle empty payloads\n\nLonger body", author="alice"),
    make_commit("a2", "2024-01-01T15:00:00Z", "feat: add export command", author="bob"),
    make_commit("a1", "2024-01-01T09:00:00Z", "chore: bump requests", author="carol"),
]

GOOD_DRAFT = """# Release v1.1.0 – 2024-01-02

## New Features
- Added an export command (a2a2a2a).

## Bug Fixes
- Empty payloads are now handled (a3a3a3a).

## Internal Changes
- Upgraded the HTTP library (a1a1a1a).
"""


def test_prompt_lists_each_commit_with_short_sha_title_and_author() -> None:
    prompt, meta = build_changelog_prompt(COMMITS)

    assert "- a3a3a3a: fix: handle empty payloads (alice)" in prompt
    assert "Longer body" not in prompt
    assert "2024-01-01 to 2024-01-02" in prompt
    for category in ("New Features", "Improvements", "Bug Fixes", "Internal Changes"):
        assert category in prompt
    assert "{{" not in prompt
    assert meta["commits"] == 3


def test_draft_returns_generated_markdown(caplog: pytest.LogCaptureFixture) -> None:
    client = FakeBedrock(text=GOOD_DRAFT)

    with caplog.at_level(logging.WARNING):
        markdown = ChangelogDrafter(client).draft(COMMITS)

    assert markdown == GOOD_DRAFT.strip()
    assert client.systems == [SYSTEM_PROMPT]
    assert "Draft check" not in caplog.text


def test_code_fences_around_the_answer_are_removed() -> None:
    client = FakeBedrock(text="```markdown\n" + GOOD_DRAFT + "```")
    assert ChangelogDrafter(client).draft(COMMITS).startswith("# Release v1.1.0")


def test_empty_generation_yields_flagged_fallback() -> None:
    client = FakeBedrock(error=BedrockError("Empty text content in response", code="EMPTY_RESPONSE"))

    markdown = ChangelogDrafter(client).draft(COMMITS)

    assert markdown.startswith("# Changelog – 2024-01-02")
    assert FAILED_BODY in markdown


def test_whitespace_only_fence_also_falls_back() -> None:
    markdown = ChangelogDrafter(FakeBedrock(text="```\n \n```")).draft(COMMITS)
    assert FAILED_BODY in markdown


def test_provider_failure_raises_generation_error() -> None:
    client = FakeBedrock(error=BedrockError("Bedrock error: throttled", code="RATE_LIMIT"))

    with pytest.raises(GenerationError) as excinfo:
        ChangelogDrafter(client).draft(COMMITS)
    assert excinfo.value.status == 503
    assert excinfo.value.context["provider_code"] == "RATE_LIMIT"


def test_empty_commit_list_is_rejected() -> None:
    client = FakeBedrock(text=GOOD_DRAFT)
    with pytest.raises(RequestValidationError):
        ChangelogDrafter(client).draft([])
    assert client.prompts == []


def test_inspect_draft_only_warns() -> None:
    draft = "## Misc\n- Did a thing\n- Fixed another (a3a3a3a)"

    warnings = inspect_draft(draft, COMMITS)

    assert "missing top-level heading" in warnings
    assert "unknown category: Misc" in warnings
    assert any("Did a thing" in w for w in warnings)
    assert not any("Fixed another" in w for w in warnings)


def test_strip_fences_leaves_plain_text_alone() -> None:
    assert strip_fences("  # Title\n") == "# Title"


class _Body:
    def __init__(self, payload: dict) -> None:
        self._raw = json.dumps(payload).encode("utf-8")

    def read(self) -> bytes:
        return self._raw


class FakeRuntime:
    def __init__(self, payload: dict) -> None:
        self.payload = payload
        self.requests = []

    def invoke_model(self, **kwargs):
        self.requests.append(kwargs)
        return {"body": _Body(self.payload)}


def test_bedrock_client_sends_low_temperature_request() -> None:
    runtime = FakeRuntime({"content": [{"type": "text", "text": "# Release"}]})
    client = BedrockClient(model_id="m", temperature=0.3, max_output_tokens=2000, runtime=runtime)

    assert client.complete("prompt", system="sys") == "# Release"

    body = json.loads(runtime.requests[0]["body"])
    assert body["temperature"] == 0.3
    assert body["max_tokens"] == 2000
    assert body["system"] == "sys"
    assert body["messages"][0]["content"][0]["text"] == "prompt"
    assert runtime.requests[0]["modelId"] == "m"


def test_bedrock_client_flags_empty_text() -> None:
    client = BedrockClient(model_id="m", runtime=FakeRuntime({"content": []}))
    with pytest.raises(BedrockError) as excinfo:
        client.complete("prompt")
    assert excinfo.value.code == "EMPTY_RESPONSE"
