#!/usr/bin/env python3
"""Changelog agent: turn a commit range into a reviewed, published changelog.

A request names a range by dates, tags or SHAs. The agent resolves it to a
canonical commit list, refuses ranges whose commits already appear in a
published changelog for the same repo and branch, drafts Markdown with the
generation model, and publishes the reviewed text.
"""

import json
import logging
import os
import sys
from typing import Any, Callable, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from langsmith.run_helpers import traceable

# Load environment variables from .env file
load_dotenv()

from clients.bedrock_client import BedrockClient  # noqa: E402
from clients.release_store import ReleaseStore, build_release_store
from configs.config import Config
from utils.changelog_drafter import ChangelogDrafter
from utils.errors import ChangelogError, RequestValidationError
from utils.github_client import GithubHistoryClient
from utils.overlap_detector import OverlapDetector
from utils.range_resolver import RangeResolver
from utils.release_models import (
	GenerateRequest,
	GenerateResult,
	ListRequest,
	PublicRelease,
	PublishRequest,
	RepoSummary,
	UpdateRequest,
	parse_request,
	summarize_repos,
)

# Set up logging
logger = logging.getLogger(__name__)

Response = Tuple[int, Any]


def _dump(value: Any) -> Any:
	if isinstance(value, list):
		return [_dump(v) for v in value]
	if hasattr(value, "model_dump"):
		return value.model_dump(by_alias=True, mode="json")
	return value


class ChangelogAgent:
	"""Orchestrates range resolution, overlap checks, drafting and publication."""

	def __init__(self, history: GithubHistoryClient, store: ReleaseStore, drafter: ChangelogDrafter):
		self.history = history
		self.store = store
		self.drafter = drafter
		self.resolver = RangeResolver(history)
		self.overlaps = OverlapDetector(store)
		logger.info("Changelog agent initialized")

	@classmethod
	def from_config(cls) -> "ChangelogAgent":
		"""Build an agent with providers configured from the environment."""
		return cls(
			history=GithubHistoryClient(),
			store=build_release_store(),
			drafter=ChangelogDrafter(BedrockClient()),
		)

	@traceable(name="generate_changelog")
	def generate(self, request: GenerateRequest) -> GenerateResult:
		"""Draft a changelog for a range without persisting anything.

		Raises:
			RequestValidationError: If the range parameters are malformed
			NotFoundError: If the repo, tag or commit does not exist, or the range is empty
			OverlapConflictError: If any commit is already in a published changelog
			UpstreamError: On GitHub failures
			GenerationError: If the generation provider fails
		"""
		spec = request.range_spec()
		logger.info(f"Generating changelog for {request.repo}@{request.branch} ({spec.mode}: {spec.describe()})")
		resolved = self.resolver.resolve(request.repo, request.branch, spec)
		self.overlaps.ensure_no_overlap(request.repo, request.branch, resolved.commit_shas)
		markdown = self.drafter.draft(resolved.commits)
		return GenerateResult(
			markdown=markdown,
			repo=request.repo,
			branch=request.branch,
			mode=request.mode,
			base_sha=resolved.base_sha,
			head_sha=resolved.head_sha,
			commit_shas=[c.sha for c in resolved.commits],
			original_params=request.original_params(),
		)

	@traceable(name="publish_changelog")
	def publish(self, request: PublishRequest) -> PublicRelease:
		"""Persist a reviewed changelog after a final overlap check."""
		new = request.to_new_release()
		# authoritative check; the one done while generating may be stale
		self.overlaps.ensure_no_overlap(new.repo, new.branch, new.commit_shas)
		record = self.store.insert(new)
		logger.info(f"✓ Published changelog {record.id} for {record.repo}@{record.branch} ({record.range_display()})")
		return record.to_public()

	def list_releases(self, request: ListRequest) -> List[PublicRelease]:
		records = self.store.list_by_repo(request.repo, request.branch or None)
		return [r.to_public() for r in records]

	def update_markdown(self, request: UpdateRequest) -> PublicRelease:
		record = self.store.update_markdown(request.id, request.markdown)
		return record.to_public()

	def repo_summaries(self) -> List[RepoSummary]:
		return summarize_repos(self.store.list_all())

	def list_tags(self, request: ListRequest) -> List[str]:
		return self.history.list_tags(request.repo)

	def list_branches(self, request: ListRequest) -> List[str]:
		return self.history.list_branches(request.repo)

	def handle(self, operation: str, payload: Optional[Dict[str, Any]] = None) -> Response:
		"""Dispatch a request and return ``(status, body)``.

		Errors are returned, not raised, as ``{"error": {kind, code, message, context}}``
		with the error's HTTP-style status.
		"""
		routes: Dict[str, Tuple[int, Callable[[Dict[str, Any]], Any]]] = {
			"generate": (200, lambda p: self.generate(parse_request(GenerateRequest, p))),
			"publish": (201, lambda p: self.publish(parse_request(PublishRequest, p))),
			"list": (200, lambda p: self.list_releases(parse_request(ListRequest, p))),
			"update": (200, lambda p: self.update_markdown(parse_request(UpdateRequest, p))),
			"repos": (200, lambda p: self.repo_summaries()),
			"tags": (200, lambda p: self.list_tags(parse_request(ListRequest, p))),
			"branches": (200, lambda p: self.list_branches(parse_request(ListRequest, p))),
		}
		try:
			if operation not in routes:
				raise RequestValidationError(
					f"Unknown operation: {operation!r}",
					context={"operation": operation, "expected": sorted(routes)},
				)
			status, fn = routes[operation]
			return status, _dump(fn(payload or {}))
		except ChangelogError as e:
			log = logger.warning if e.status < 500 else logger.error
			log(f"{operation} failed: {e.kind}/{e.code}: {e}")
			return e.status, {"error": e.to_dict()}
		except Exception as e:
			logger.exception(f"{operation} failed unexpectedly")
			return 500, {"error": {"kind": "InternalError", "code": "UNKNOWN", "message": str(e), "context": {}}}


def _read_text(path: str) -> str:
	with open(path, "r", encoding="utf-8") as f:
		return f.read()


def _payload_from_args(args) -> Dict[str, Any]:
	if args.command == "generate":
		return {
			"repo": args.repo, "branch": args.branch, "mode": args.mode,
			"start": args.start, "end": args.end, "base": args.base, "head": args.head,
		}
	if args.command == "publish":
		payload = json.loads(_read_text(args.draft))
		if args.markdown_file:
			payload["markdown"] = _read_text(args.markdown_file)
		return payload
	if args.command == "edit":
		return {"id": args.id, "markdown": _read_text(args.markdown_file)}
	if args.command in ("list", "tags", "branches"):
		return {"repo": args.repo, "branch": getattr(args, "branch", None)}
	return {}


def print_result(command: str, body: Any) -> None:
	"""Print a short human-readable rendering of a successful response."""
	if command == "generate":
		print(body["markdown"])
		print(f"\n[{len(body['commitShas'])} commits, {body['baseSha'][:7]}...{body['headSha'][:7]}]", file=sys.stderr)
	elif command in ("publish", "edit"):
		verb = "Published" if command == "publish" else "Updated"
		print(f"{verb} {body['id']} ({body['repo']}@{body['branch']}, {body['range']})")
	elif command == "list":
		if not body:
			print("No changelogs published yet.")
		for release in body:
			print(f"{release['publishedAt']}  {release['id']}  {release['branch']}  {release['range']}")
	elif command == "repos":
		for summary in body:
			recent = summary["mostRecentChangelog"]
			print(f"{summary['repo']}: {summary['totalChangelogs']} changelog(s) on {', '.join(summary['branches'])}; latest {recent['range']}")
	else:
		for name in body:
			print(name)


_OPERATIONS = {"edit": "update"}


def configure_tracing() -> bool:
	"""Turn on LangSmith tracing when an API key is configured."""
	cfg = Config.get_langsmith_config()
	if not cfg["api_key"]:
		return False
	os.environ.setdefault("LANGSMITH_TRACING", "true")
	os.environ.setdefault("LANGSMITH_PROJECT", cfg["project"])
	os.environ.setdefault("LANGSMITH_ENDPOINT", cfg["endpoint"])
	return True


def main():
	"""CLI entry point for the changelog agent."""
	import argparse

	parser = argparse.ArgumentParser(
		description="Changelog Agent - Draft and publish changelogs for commit ranges",
		formatter_class=argparse.RawDescriptionHelpFormatter,
		epilog="""
Examples:
  python -m agents.changelog_agent --json generate --repo octo/demo --mode date --start 2024-01-01 --end 2024-01-31 > draft.json
  python -m agents.changelog_agent publish --draft draft.json --markdown-file CHANGELOG.md
  python -m agents.changelog_agent list --repo octo/demo --branch main
		"""
	)
	parser.add_argument("--json", action="store_true", help="Output full JSON instead of summary")
	parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
	sub = parser.add_subparsers(dest="command", required=True)

	gen = sub.add_parser("generate", help="Draft a changelog for a commit range")
	gen.add_argument("--repo", required=True, help="Repository as owner/name")
	gen.add_argument("--branch", default=None)
	gen.add_argument("--mode", required=True, choices=["date", "tag", "sha"])
	gen.add_argument("--start", help="Start date (date mode)")
	gen.add_argument("--end", help="End date (date mode)")
	gen.add_argument("--base", help="Base tag or SHA")
	gen.add_argument("--head", help="Head tag or SHA (defaults to HEAD)")

	pub = sub.add_parser("publish", help="Publish a reviewed draft")
	pub.add_argument("--draft", required=True, help="JSON produced by '--json generate'")
	pub.add_argument("--markdown-file", help="Reviewed Markdown replacing the drafted text")

	edit = sub.add_parser("edit", help="Replace the Markdown of a published changelog")
	edit.add_argument("--id", required=True)
	edit.add_argument("--markdown-file", required=True)

	lst = sub.add_parser("list", help="List published changelogs for a repository")
	lst.add_argument("--repo", required=True)
	lst.add_argument("--branch")

	sub.add_parser("repos", help="Summarize repositories with published changelogs")

	for name in ("tags", "branches"):
		p = sub.add_parser(name, help=f"List repository {name}")
		p.add_argument("--repo", required=True)

	args = parser.parse_args()

	# Set up logging
	log_level = logging.DEBUG if args.verbose else logging.INFO
	logging.basicConfig(
		level=log_level,
		format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
	)

	# Suppress verbose logs from libraries unless in debug mode
	if not args.verbose:
		logging.getLogger("urllib3").setLevel(logging.WARNING)
		logging.getLogger("botocore").setLevel(logging.WARNING)

	if configure_tracing():
		logger.info("LangSmith tracing enabled")

	try:
		payload = _payload_from_args(args)
	except (OSError, ValueError) as e:
		print(f"Error: {e}", file=sys.stderr)
		sys.exit(1)
	if payload.get("branch") is None:
		payload.pop("branch", None)

	agent = ChangelogAgent.from_config()
	try:
		status, body = agent.handle(_OPERATIONS.get(args.command, args.command), payload)
	finally:
		agent.history.close()

	if status >= 400:
		err = body["error"]
		if args.json:
			print(json.dumps(body, indent=2, default=str))
		print(f"Error ({err['kind']}): {err['message']}", file=sys.stderr)
		sys.exit(1)

	if args.json:
		print(json.dumps(body, indent=2, default=str))
	else:
		print_result(args.command, body)
	sys.exit(0)


if __name__ == "__main__":
	main()
