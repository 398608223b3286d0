"""Thin wrapper around the Anthropic SDK.

All Claude calls in the app go through ``complete()`` so the error
classification lives in one place and tests can patch a single function.
"""
from __future__ import annotations

import logging
from typing import Optional

import anthropic
from flask import current_app

from .errors import MarkupExtractionError, ServiceNotConfigured, classify_llm_error

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-7-sonnet-20250219"
DEFAULT_ANALYSIS_MODEL = "claude-3-haiku-20240307"


def get_client() -> anthropic.Anthropic:
    api_key = current_app.config.get("ANTHROPIC_API_KEY")
    if not api_key:
        raise ServiceNotConfigured("Claude API key is not configured (ANTHROPIC_API_KEY).")
    return anthropic.Anthropic(api_key=api_key)


def text_block(text: str) -> dict:
    return {"type": "text", "text": text}


def image_block(data_b64: str, media_type: str = "image/jpeg") -> dict:
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": data_b64},
    }


def complete(
    content: list[dict] | str,
    *,
    system: Optional[str] = None,
    model: Optional[str] = None,
    max_tokens: int = 4096,
) -> str:
    """Send one user turn to Claude and return the text of the first block.

    Raises a classified DesignError (quota/auth/other) on API failure and
    MarkupExtractionError when the reply carries no text.
    """
    model = model or current_app.config.get("CLAUDE_MODEL") or DEFAULT_MODEL
    client = get_client()
    kwargs = {
        "model": model,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": content}],
    }
    if system:
        kwargs["system"] = system

    try:
        message = client.messages.create(**kwargs)
    except Exception as e:
        logger.error("Claude request failed (%s): %s", model, e)
        raise classify_llm_error(e) from e

    if not message.content:
        raise MarkupExtractionError("Empty response from Claude")
    first = message.content[0]
    if getattr(first, "type", None) != "text":
        raise MarkupExtractionError("Expected text response from Claude but got a different content type")
    return first.text


def analysis_model() -> str:
    return current_app.config.get("CLAUDE_ANALYSIS_MODEL") or DEFAULT_ANALYSIS_MODEL
