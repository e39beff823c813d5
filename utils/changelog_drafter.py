#!/usr/bin/env python3
"""Changelog drafting: commits in, Markdown out."""

import logging
from typing import Sequence

from langsmith.run_helpers import traceable

from clients.bedrock_client import BedrockClient, BedrockError
from utils.commit_models import CommitRef
from utils.errors import GenerationError, RequestValidationError
from utils.markdown_renderer import fallback_document, inspect_draft, strip_fences
from utils.prompt_builder import SYSTEM_PROMPT, build_changelog_prompt

logger = logging.getLogger(__name__)


class ChangelogDrafter:
    """Drafts a categorized changelog for a list of commits.

    The wording is up to the model; the structure (heading, fixed categories,
    SHA citations) is requested by the prompt and checked afterwards with
    warnings only.
    """

    def __init__(self, client: BedrockClient):
        self.client = client

    @traceable(name="draft_changelog")
    def draft(self, commits: Sequence[CommitRef]) -> str:
        """Return a Markdown changelog for ``commits`` (newest first).

        Raises:
            RequestValidationError: If ``commits`` is empty
            GenerationError: If the generation provider fails outright
        """
        if not commits:
            raise RequestValidationError("No commits to draft a changelog from")

        prompt, meta = build_changelog_prompt(commits)
        logger.info(f"Drafting changelog for {meta['commits']} commits ({meta['earliest']} to {meta['latest']}, prompt {meta['prompt_len']} chars)")
        latest = max(c.authored_at for c in commits)

        try:
            raw = self.client.complete(prompt, system=SYSTEM_PROMPT)
        except BedrockError as e:
            if e.code == "EMPTY_RESPONSE":
                logger.warning("Generator returned no content; using fallback changelog")
                return fallback_document(latest)
            logger.error(f"Changelog generation failed ({e.code}): {e}")
            raise GenerationError(
                f"Changelog generation failed: {e}",
                context={"provider_code": e.code, "commits": len(commits)},
            ) from e

        markdown = strip_fences(raw)
        if not markdown:
            logger.warning("Generator output was empty after cleanup; using fallback changelog")
            return fallback_document(latest)

        for warning in inspect_draft(markdown, commits):
            logger.warning(f"Draft check: {warning}")
        return markdown
