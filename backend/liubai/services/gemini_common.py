"""
Shared helpers for Gemini: model construction with the coach persona, a blocking
generate_text for one-shot texts (threadpool, timeout, retry on 429/5xx),
and text extraction from streamed chunks.
"""
from __future__ import annotations

import asyncio
import logging
import re
import time

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from starlette.concurrency import run_in_threadpool

from liubai.config import settings

logger = logging.getLogger(__name__)

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_ONLY_HIGH,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
}

# Error messages that look like rate limiting or a server-side failure are worth retrying
RETRYABLE_STATUS_PATTERN = re.compile(r"\b(429|5\d{2})\b")


def _is_retryable_error(exc: BaseException) -> bool:
    """True if the exception looks like 429 or 5xx."""
    msg = (getattr(exc, "message", None) or str(exc)) if exc else ""
    return bool(RETRYABLE_STATUS_PATTERN.search(msg))


def build_model(
    system_instruction: str,
    *,
    max_output_tokens: int,
    temperature: float,
    model_name: str | None = None,
):
    return genai.GenerativeModel(
        model_name or settings.gemini_model,
        system_instruction=system_instruction,
        generation_config={"temperature": temperature, "max_output_tokens": max_output_tokens},
        safety_settings=SAFETY_SETTINGS,
    )


def chunk_text(chunk) -> str:
    """Text of one response chunk; empty for chunks without text parts (e.g. the final stop chunk)."""
    try:
        return chunk.text or ""
    except ValueError:
        return ""


def response_text(response) -> str:
    """Stripped text of a full (non-streamed) response; empty when blocked or without parts."""
    if response is None:
        return ""
    return chunk_text(response).strip()


async def generate_text(model, contents, *, purpose: str) -> str:
    """
    One-shot generation for texts that are stored rather than streamed (weekly reviews).
    The blocking SDK call runs in a thread pool under gemini_request_timeout_seconds;
    timeouts and 429/5xx-looking errors are retried up to gemini_max_attempts times
    with exponential backoff. Other errors and the last failure propagate.
    """
    timeout = float(settings.gemini_request_timeout_seconds or 90)
    max_attempts = max(1, settings.gemini_max_attempts)
    started = time.monotonic()
    for attempt in range(1, max_attempts + 1):
        try:
            response = await asyncio.wait_for(
                run_in_threadpool(model.generate_content, contents),
                timeout=timeout,
            )
        except Exception as e:
            retryable = isinstance(e, asyncio.TimeoutError) or _is_retryable_error(e)
            if not retryable or attempt == max_attempts:
                logger.warning("Gemini %s: giving up after %d attempt(s): %s", purpose, attempt, e)
                raise
            delay = settings.gemini_retry_backoff_seconds * 2 ** (attempt - 1)
            logger.warning("Gemini %s: attempt %d failed, retrying in %.1fs: %s", purpose, attempt, delay, e)
            await asyncio.sleep(delay)
            continue
        text = response_text(response)
        logger.info(
            "Gemini %s: %d chars in %.0fms (attempt %d)",
            purpose, len(text), (time.monotonic() - started) * 1000, attempt,
        )
        return text
    raise RuntimeError(f"Gemini {purpose}: no attempt made")
