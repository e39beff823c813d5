#!/usr/bin/env python3
"""Claude on AWS Bedrock, reduced to one call: prompt in, text out."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, EndpointConnectionError, ReadTimeoutError

from configs.config import Config

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "bedrock-2023-05-31"

_THROTTLING_CODES = {"ThrottlingException", "TooManyRequestsException", "ServiceQuotaExceededException"}
_AUTH_CODES = {"AccessDeniedException", "UnrecognizedClientException", "ExpiredTokenException"}


class BedrockError(Exception):
	"""Generation failure tagged with a short `.code`.

	Codes: TIMEOUT, NETWORK, RATE_LIMIT, UNAUTHORIZED, EMPTY_RESPONSE, UNKNOWN.
	"""
	def __init__(self, message: str, code: str = "UNKNOWN") -> None:
		super().__init__(message)
		self.code = code


def _client_error_code(exc: ClientError) -> str:
	error = (getattr(exc, "response", None) or {}).get("Error", {})
	aws_code = error.get("Code", "")
	if aws_code in _THROTTLING_CODES:
		return "RATE_LIMIT"
	if aws_code in _AUTH_CODES:
		return "UNAUTHORIZED"
	if aws_code == "ModelTimeoutException":
		return "TIMEOUT"
	return "UNKNOWN"


def _read_body(response: Dict[str, Any]) -> Dict[str, Any]:
	stream = response.get("body")
	raw = stream.read() if hasattr(stream, "read") else stream
	if isinstance(raw, (bytes, bytearray)):
		raw = raw.decode("utf-8")
	return json.loads(raw)


class BedrockClient:
	"""Text generation client, built explicitly and passed to the drafter.

	Nothing here retries: every failure surfaces once as a BedrockError.
	"""

	def __init__(
		self,
		model_id: Optional[str] = None,
		*,
		temperature: Optional[float] = None,
		max_output_tokens: Optional[int] = None,
		runtime: Any = None,
	) -> None:
		settings = Config.get_bedrock_config()
		self.model_id = model_id or settings["model_id"]
		self.temperature = settings["temperature"] if temperature is None else float(temperature)
		self.max_output_tokens = settings["max_tokens"] if max_output_tokens is None else int(max_output_tokens)
		self._runtime = runtime or boto3.client("bedrock-runtime", region_name=settings["region_name"])

	def _request_body(self, prompt: str, system: Optional[str]) -> str:
		request: Dict[str, Any] = {
			"anthropic_version": ANTHROPIC_VERSION,
			"max_tokens": self.max_output_tokens,
			"temperature": self.temperature,
			"messages": [{"role": "user", "content": [{"type": "text", "text": prompt}]}],
		}
		if system:
			request["system"] = system
		return json.dumps(request)

	def complete(self, prompt: str, *, system: Optional[str] = None) -> str:
		"""Return the model's text answer for a prompt.

		Raises:
			BedrockError: ``EMPTY_RESPONSE`` when the model answered without text,
				otherwise the code of the transport or service failure.
		"""
		try:
			response = self._runtime.invoke_model(
				modelId=self.model_id,
				contentType="application/json",
				accept="application/json",
				body=self._request_body(prompt, system).encode("utf-8"),
			)
			data = _read_body(response)
		except (ReadTimeoutError, ConnectTimeoutError) as e:
			raise BedrockError(f"Bedrock request timed out: {e}", code="TIMEOUT") from e
		except EndpointConnectionError as e:
			raise BedrockError(f"Bedrock endpoint unreachable: {e}", code="NETWORK") from e
		except ClientError as e:
			raise BedrockError(f"Bedrock rejected the request: {e}", code=_client_error_code(e)) from e
		except (BotoCoreError, ValueError) as e:
			raise BedrockError(f"Unreadable Bedrock response: {e}", code="UNKNOWN") from e

		# Messages API: {"content": [{"type": "text", "text": ...}, ...], "stop_reason": ...}
		text = "".join(
			block.get("text", "") for block in data.get("content") or [] if block.get("type") == "text"
		)
		if not text.strip():
			raise BedrockError("Model returned no text content", code="EMPTY_RESPONSE")
		logger.debug(f"✓ {len(text)} chars from {self.model_id} (stop_reason={data.get('stop_reason')})")
		return text


__all__ = ["BedrockClient", "BedrockError"]
