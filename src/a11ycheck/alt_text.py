"""LLM-powered alt text generation for images."""

from __future__ import annotations

import base64
import logging
import mimetypes
import os
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

import httpx

if TYPE_CHECKING:
    from a11ycheck.config import Config, LLMConfig

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You write alt text for images in course content. "
    "Describe what the image shows in one short sentence that a screen reader "
    "user would find useful. Do not start with 'Image of' or 'Picture of'. "
    "Never use the file name. Return ONLY the alt text."
)
_USER_PROMPT = "Write alt text for this image."


class LLMError(Exception):
    """Raised when an LLM API call fails."""


def _get_api_key(config: LLMConfig) -> str:
    """Resolve API key from environment variable.

    Raises
    ------
    LLMError
        If the environment variable is not set.
    """
    key = os.environ.get(config.api_key_env, "")
    if not key:
        msg = f"API key not found. Set environment variable: {config.api_key_env}"
        raise LLMError(msg)
    return key


def _is_remote(src: str) -> bool:
    return src.startswith(("http://", "https://"))


def _load_image(src: str, base_dir: Path | None) -> tuple[str, str]:
    """Read a local image and return ``(media_type, base64_data)``."""
    path = Path(src)
    if not path.is_absolute() and base_dir is not None:
        path = base_dir / path
    try:
        data = path.read_bytes()
    except OSError as exc:
        msg = f"Cannot read image: {src}"
        raise LLMError(msg) from exc
    media_type = mimetypes.guess_type(path.name)[0] or "image/png"
    return media_type, base64.b64encode(data).decode("ascii")


def _anthropic_image_block(src: str, base_dir: Path | None) -> dict[str, Any]:
    if _is_remote(src):
        return {"type": "image", "source": {"type": "url", "url": src}}
    media_type, data = _load_image(src, base_dir)
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": data},
    }


def _openai_image_block(src: str, base_dir: Path | None) -> dict[str, Any]:
    if _is_remote(src):
        return {"type": "image_url", "image_url": {"url": src}}
    media_type, data = _load_image(src, base_dir)
    return {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{data}"}}


def _call_anthropic(config: LLMConfig, api_key: str, image: dict[str, Any]) -> str:
    """Call Anthropic Messages API."""
    response = httpx.post(
        "https://api.anthropic.com/v1/messages",
        headers={
            "x-api-key": api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        },
        json={
            "model": config.model,
            "max_tokens": config.max_tokens,
            "system": _SYSTEM_PROMPT,
            "messages": [
                {"role": "user", "content": [image, {"type": "text", "text": _USER_PROMPT}]}
            ],
        },
        timeout=60.0,
    )

    if response.status_code != 200:
        msg = f"Anthropic API error {response.status_code}: {response.text}"
        raise LLMError(msg)

    data = response.json()
    content_blocks = data.get("content", [])
    if not content_blocks:
        msg = "Anthropic API returned empty response."
        raise LLMError(msg)

    return str(content_blocks[0].get("text", ""))


def _call_openai(config: LLMConfig, api_key: str, image: dict[str, Any]) -> str:
    """Call OpenAI Chat Completions API."""
    response = httpx.post(
        "https://api.openai.com/v1/chat/completions",
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
        json={
            "model": config.model,
            "max_tokens": config.max_tokens,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": [{"type": "text", "text": _USER_PROMPT}, image]},
            ],
        },
        timeout=60.0,
    )

    if response.status_code != 200:
        msg = f"OpenAI API error {response.status_code}: {response.text}"
        raise LLMError(msg)

    data = response.json()
    choices = data.get("choices", [])
    if not choices:
        msg = "OpenAI API returned empty response."
        raise LLMError(msg)

    return str(choices[0].get("message", {}).get("content", ""))


def clean_alt_text(text: str, max_length: int) -> str:
    """Strip quotes and whitespace, and cut at a word boundary within *max_length*."""
    cleaned = " ".join(text.split()).strip("\"' ")
    if len(cleaned) <= max_length:
        return cleaned
    cut = cleaned[:max_length].rsplit(" ", 1)[0]
    return cut.rstrip(",;:")


def generate_alt_text(
    src: str,
    config: LLMConfig,
    *,
    max_length: int = 120,
    base_dir: Path | None = None,
) -> str:
    """Ask the configured LLM provider to describe the image at *src*.

    Raises
    ------
    LLMError
        On API errors, unreadable images, missing API key, or an empty answer.
    """
    api_key = _get_api_key(config)
    logger.debug("Generating alt text for %s via %s", src, config.provider)

    if config.provider == "anthropic":
        text = _call_anthropic(config, api_key, _anthropic_image_block(src, base_dir))
    elif config.provider == "openai":
        text = _call_openai(config, api_key, _openai_image_block(src, base_dir))
    else:
        msg = f"Unsupported provider: {config.provider}"
        raise LLMError(msg)

    result = clean_alt_text(text, max_length)
    if not result:
        msg = "LLM returned empty alt text."
        raise LLMError(msg)
    return result


def make_generator(
    config: Config, base_dir: Path | None = None
) -> Callable[[str], str | None] | None:
    """Bind :func:`generate_alt_text` to *config*; ``None`` when no LLM is configured."""
    if config.llm is None:
        return None
    return partial(
        generate_alt_text,
        config=config.llm,
        max_length=config.max_alt_length,
        base_dir=base_dir,
    )
