from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from core.logging_utils import redact_secret

from .categories import CATEGORIES
from .errors import ClassificationError
from .types import ClassifierReply

LOGGER = logging.getLogger("smartdump.triage.classifier")

DEFAULT_BASE_URL = "https://api.anthropic.com"
DEFAULT_MODEL = "claude-opus-4-5-20251101"
DEFAULT_API_VERSION = "2023-06-01"

CLASSIFY_PROMPT = (
    "Analyze this screenshot. Output JSON only.\n\n"
    "Rules:\n"
    "- 'new_filename': snake_case, 3-4 words max, descriptive, .png\n"
    f"- 'category': ONE simple word from: {', '.join(CATEGORIES)}\n"
    "- 'reasoning': 2-3 words why\n\n"
    'Example: {"new_filename": "stripe_invoice.png", "category": "Finance", "reasoning": "payment receipt"}'
)

SUBCATEGORY_PROMPT = (
    "This screenshot is currently categorized as '{parent}'. Look at the image and give a MORE SPECIFIC "
    "subcategory. Output ONLY a JSON object with 'subcategory' (2-3 words max, be specific based on what "
    "you see). Examples for Finance: 'Receipts', 'Bank_Statements', 'Invoices', 'Tax_Documents', "
    "'Subscriptions'. Examples for Code: 'Terminal', 'Code_Editor', 'Documentation', 'GitHub', 'Errors'. "
    'Example output: {{"subcategory": "Bank_Statements"}}'
)


@dataclass(slots=True)
class ClassifierSettings:
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    max_tokens: int = 1024
    subcategory_max_tokens: int = 256
    api_version: str = DEFAULT_API_VERSION
    timeout_s: float = 30.0

    @classmethod
    def from_settings(cls, payload: Dict[str, Any]) -> "ClassifierSettings":
        triage = payload.get("triage") or {}
        section = triage.get("classifier") or {}
        return cls(
            base_url=str(section.get("base_url", DEFAULT_BASE_URL)).rstrip("/"),
            model=str(section.get("model", DEFAULT_MODEL)),
            max_tokens=int(section.get("max_tokens", 1024)),
            subcategory_max_tokens=int(section.get("subcategory_max_tokens", 256)),
            api_version=str(section.get("api_version", DEFAULT_API_VERSION)),
            timeout_s=float(triage.get("request_timeout_s", 30.0)),
        )


def strip_code_fences(text: str) -> str:
    """Remove markdown code fence markers around an embedded JSON answer."""

    return text.strip().replace("```json", "").replace("```", "").strip()


def build_messages(image_bytes: bytes, prompt: str, *, media_type: str = "image/png") -> List[Dict[str, Any]]:
    encoded = base64.standard_b64encode(image_bytes).decode("ascii")
    return [
        {
            "role": "user",
            "content": [
                {
                    "type": "image",
                    "source": {"type": "base64", "media_type": media_type, "data": encoded},
                },
                {"type": "text", "text": prompt},
            ],
        }
    ]


def extract_text(body: Any) -> str:
    """Return ``content[0].text`` of a provider reply."""

    if not isinstance(body, dict):
        raise ClassificationError("provider reply is not a JSON object")
    content = body.get("content")
    if not isinstance(content, list) or not content:
        raise ClassificationError("provider reply has no content blocks")
    first = content[0]
    text = first.get("text") if isinstance(first, dict) else None
    if not isinstance(text, str):
        raise ClassificationError("provider reply has no text block")
    return text


def _parse_object(text: str) -> Dict[str, Any]:
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except ValueError as exc:
        raise ClassificationError(f"answer is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ClassificationError("answer is not a JSON object")
    return data


def _required_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ClassificationError(f"answer is missing '{key}'")
    return value.strip()


def parse_classification(text: str) -> ClassifierReply:
    data = _parse_object(text)
    reasoning = data.get("reasoning")
    return ClassifierReply(
        new_filename=_required_str(data, "new_filename"),
        category=_required_str(data, "category"),
        reasoning=reasoning.strip() if isinstance(reasoning, str) else "",
    )


def parse_subcategory(text: str) -> str:
    return _required_str(_parse_object(text), "subcategory")


class ClassifierClient:
    """Single-attempt client for the provider's messages endpoint."""

    def __init__(self, settings: Optional[ClassifierSettings] = None, *, session: Optional[requests.Session] = None) -> None:
        self.settings = settings or ClassifierSettings()
        self._session = session or requests.Session()

    def classify(self, image_bytes: bytes, credential: str, *, timeout: Optional[float] = None) -> ClassifierReply:
        text = self._request(image_bytes, credential, CLASSIFY_PROMPT, self.settings.max_tokens, timeout)
        return parse_classification(text)

    def classify_subcategory(
        self,
        image_bytes: bytes,
        credential: str,
        parent_category: str,
        *,
        timeout: Optional[float] = None,
    ) -> str:
        prompt = SUBCATEGORY_PROMPT.format(parent=parent_category)
        text = self._request(image_bytes, credential, prompt, self.settings.subcategory_max_tokens, timeout)
        return parse_subcategory(text)

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    def _request(
        self,
        image_bytes: bytes,
        credential: str,
        prompt: str,
        max_tokens: int,
        timeout: Optional[float],
    ) -> str:
        payload = {
            "model": self.settings.model,
            "max_tokens": max_tokens,
            "messages": build_messages(image_bytes, prompt),
        }
        headers = {
            "x-api-key": credential,
            "anthropic-version": self.settings.api_version,
            "content-type": "application/json",
        }
        url = f"{self.settings.base_url}/v1/messages"
        deadline = timeout if timeout is not None else self.settings.timeout_s
        LOGGER.debug("POST %s (key=%s, %d image bytes)", url, redact_secret(credential), len(image_bytes))
        try:
            response = self._session.post(url, json=payload, headers=headers, timeout=deadline)
        except requests.Timeout as exc:
            raise ClassificationError(f"provider request timed out after {deadline}s", kind="timeout") from exc
        except requests.RequestException as exc:
            raise ClassificationError(f"provider request failed: {exc}", kind="transport") from exc
        if response.status_code >= 300:
            raise ClassificationError(
                f"provider returned HTTP {response.status_code}",
                kind="status",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise ClassificationError("provider reply is not JSON") from exc
        return extract_text(body)


__all__ = [
    "CLASSIFY_PROMPT",
    "ClassifierClient",
    "ClassifierSettings",
    "SUBCATEGORY_PROMPT",
    "build_messages",
    "extract_text",
    "parse_classification",
    "parse_subcategory",
    "strip_code_fences",
]
