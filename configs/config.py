import os
from typing import Dict, Any

class Config:
	"""Configuration for the changelog agent."""

	# AWS Bedrock Configuration
	AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
	BEDROCK_MODEL_ID = os.getenv("BEDROCK_MODEL_ID", "anthropic.claude-3-sonnet-20240229-v1:0")
	GENERATION_TEMPERATURE = float(os.getenv("GENERATION_TEMPERATURE", "0.3"))
	GENERATION_MAX_TOKENS = int(os.getenv("GENERATION_MAX_TOKENS", "2000"))

	# LangSmith Configuration
	LANGSMITH_API_KEY = os.getenv("LANGSMITH_API_KEY", "")
	LANGSMITH_PROJECT = os.getenv("LANGSMITH_PROJECT", "changelog-agent")
	LANGSMITH_ENDPOINT = os.getenv("LANGSMITH_ENDPOINT", "https://api.smith.langchain.com")

	# GitHub REST Configuration
	GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip('/')
	GITHUB_TOKEN = os.getenv("GITHUB_TOKEN") or os.getenv("GITHUB_PAT")
	HTTP_TIMEOUT_S = int(os.getenv("HTTP_TIMEOUT_S", "30"))
	# transport-level retries; the core itself never retries
	GITHUB_HTTP_RETRIES = int(os.getenv("GITHUB_HTTP_RETRIES", "0"))

	# History scanning
	COMMITS_PAGE_SIZE = int(os.getenv("COMMITS_PAGE_SIZE", "100"))
	COMMITS_MAX_PAGES = int(os.getenv("COMMITS_MAX_PAGES", "10"))
	TAG_MAX_DEPTH = int(os.getenv("TAG_MAX_DEPTH", "5"))

	DEFAULT_BRANCH = os.getenv("DEFAULT_BRANCH", "main")

	# Publication store
	RELEASE_STORE_BACKEND = os.getenv("RELEASE_STORE_BACKEND", "file")
	RELEASE_STORE_ROOT = os.getenv("RELEASE_STORE_ROOT", ".cache/changelogs/releases")
	RELEASE_TABLE_NAME = os.getenv("RELEASE_TABLE_NAME", "release_slices")
	RELEASE_REPO_INDEX = os.getenv("RELEASE_REPO_INDEX", "RepoPublishedIndex")

	# Rendering
	MARKDOWN_PREVIEW_CHARS = int(os.getenv("MARKDOWN_PREVIEW_CHARS", "200"))
	OVERLAP_SAMPLE_SHAS = int(os.getenv("OVERLAP_SAMPLE_SHAS", "5"))

	@classmethod
	def get_bedrock_config(cls) -> Dict[str, Any]:
		"""Get Bedrock configuration."""
		return {
			"region_name": cls.AWS_REGION,
			"model_id": cls.BEDROCK_MODEL_ID,
			"temperature": cls.GENERATION_TEMPERATURE,
			"max_tokens": cls.GENERATION_MAX_TOKENS,
		}

	@classmethod
	def get_langsmith_config(cls) -> Dict[str, Any]:
		"""Get LangSmith configuration."""
		return {
			"api_key": cls.LANGSMITH_API_KEY,
			"project": cls.LANGSMITH_PROJECT,
			"endpoint": cls.LANGSMITH_ENDPOINT
		}

	@classmethod
	def get_github_config(cls) -> Dict[str, Any]:
		"""Get GitHub configuration for the REST client."""
		return {
			"base_url": cls.GITHUB_API_URL,
			"token": cls.GITHUB_TOKEN,
			"timeout_s": cls.HTTP_TIMEOUT_S,
			"retries": cls.GITHUB_HTTP_RETRIES,
		}

	@classmethod
	def get_history_config(cls) -> Dict[str, int]:
		"""Get commit history scanning limits.

		Returns:
			Mapping with page size, maximum pages scanned, and annotated tag depth.
		"""
		return {
			"page_size": cls.COMMITS_PAGE_SIZE,
			"max_pages": cls.COMMITS_MAX_PAGES,
			"tag_max_depth": cls.TAG_MAX_DEPTH,
		}

	@classmethod
	def get_store_config(cls) -> Dict[str, Any]:
		return {
			"backend": cls.RELEASE_STORE_BACKEND,
			"root": cls.RELEASE_STORE_ROOT,
			"table_name": cls.RELEASE_TABLE_NAME,
			"repo_index": cls.RELEASE_REPO_INDEX,
			"region_name": cls.AWS_REGION,
		}
