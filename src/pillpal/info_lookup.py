"""
Medication information lookup via Google Gemini.

High level
----------
Asks Gemini's `generateContent` endpoint for a short, plain-language
description of what a medication is commonly used for. The text is shown to
the user next to a "not medical advice" disclaimer.

Key behaviors
-------------
- Single attempt: no retry, no cache.
- Network, HTTP and payload problems raise `InfoLookupError` from the client;
  `lookup_medication_info` turns that into a user-facing message so callers
  never see the exception.
- Without an API key the client logs a warning when created and returns an
  explanatory message instead of calling the API.
- `InfoLookupService.submit` runs lookups on a thread pool. Each result
  carries the medication it was requested for; a newer request never cancels
  an older one.

Environment
-----------
GEMINI_API_KEY  : API key (falls back to API_KEY)
GEMINI_MODEL    : Model name (default "gemini-2.5-flash")
GEMINI_BASE_URL : Base URL override (default "https://generativelanguage.googleapis.com/v1beta")
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .medication import Medication

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

NOT_CONFIGURED_MESSAGE = "Gemini API is not configured. Please provide an API key."
FETCH_ERROR_MESSAGE = (
    "Sorry, we couldn't fetch information for this medication. Please try again later."
)
DISCLAIMER = (
    "Information provided by Gemini. This is not medical advice. "
    "Always consult with a healthcare professional."
)

PROMPT_TEMPLATE = (
    'Provide a brief, simple, one-paragraph explanation for the common use of the medication "{name}". '
    "Do not provide medical advice, dosage information, or side effects. "
    'Start the explanation with "This medication is commonly used for...". '
    "Keep the language easy to understand for a non-medical person."
)


class InfoLookupError(RuntimeError):
    """Raised when the Gemini lookup fails."""


def build_prompt(medication_name: str) -> str:
    return PROMPT_TEMPLATE.format(name=medication_name)


def _extract_text(payload: Dict[str, Any]) -> str:
    """
    Join the text parts of the first candidate.
    Anything that does not look like a generateContent response is an error.
    """
    if not isinstance(payload, dict):
        raise InfoLookupError("Unexpected response payload")
    candidates = payload.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        raise InfoLookupError("Response contained no candidates")
    content = candidates[0].get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        raise InfoLookupError("Response candidate has no content parts")
    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()
    if not text:
        raise InfoLookupError("Response candidate contained no text")
    return text


class GeminiClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key if api_key is not None else (
            os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
        )
        self.model = model or os.getenv("GEMINI_MODEL", DEFAULT_MODEL)
        self.base_url = (base_url or os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.timeout = timeout
        if not self.configured:
            logging.warning("Gemini API key not found. Please set the GEMINI_API_KEY environment variable.")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def fetch_summary(self, medication_name: str) -> str:
        """
        Return a plain-language summary for `medication_name`.

        Raises
        ------
        InfoLookupError
            If the request fails or the response cannot be read.
        """
        if not self.configured:
            return NOT_CONFIGURED_MESSAGE

        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {"contents": [{"parts": [{"text": build_prompt(medication_name)}]}]}
        try:
            resp = requests.post(
                url,
                params={"key": self.api_key},
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise InfoLookupError(f"Failed to communicate with the Gemini API: {e}") from e
        return _extract_text(payload)


@dataclass(frozen=True)
class MedicationInfo:
    """
    Outcome of one lookup, tied to the medication it was requested for.
    Exactly one of `content` / `error` is non-empty.
    """

    medication: Medication
    content: str = ""
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


def lookup_medication_info(client: GeminiClient, medication: Medication) -> MedicationInfo:
    try:
        content = client.fetch_summary(medication.name)
    except InfoLookupError as e:
        logging.error(f"Failed to get medication info for {medication.name!r}: {e}")
        return MedicationInfo(medication=medication, error=FETCH_ERROR_MESSAGE)
    return MedicationInfo(medication=medication, content=content)


class InfoLookupService:
    """Runs lookups off the caller's thread."""

    def __init__(self, client: GeminiClient, max_workers: int = 4):
        self.client = client
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pillpal-info")

    def submit(self, medication: Medication) -> "Future[MedicationInfo]":
        return self._executor.submit(lookup_medication_info, self.client, medication)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "InfoLookupService":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
