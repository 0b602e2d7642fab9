"""Answer and display-name generation using OpenAI chat completions.

Provides:
- Generator.answer: run a fully constructed RAG prompt and return the answer text
- Generator.display_name: short human-readable name for a document snippet
- extract_text: response text with a structured-segment fallback
- sanitize_display_name: normalize a generated name into a filename-like token

Configuration is read from docintel.config.settings.
"""
import logging
import re
from typing import Any, List, Optional

from openai import AsyncOpenAI

from docintel.config import Settings, settings as default_settings
from docintel.errors import GenerativeModelError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a comprehensive document analysis assistant. Provide detailed, thorough answers "
    "with proper analysis, strictly from the provided context, and cite sources by [#index]."
)
APOLOGY = (
    "I'm sorry, I couldn't produce an answer from the retrieved documents. "
    "Please try rephrasing your question."
)
FALLBACK_NAME = "Document"
NAME_SNIPPET_CHARS = 1000


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _primary_text(resp: Any) -> Optional[str]:
    choices = _get(resp, "choices") or []
    if not choices:
        return None
    content = _get(_get(choices[0], "message"), "content")
    if isinstance(content, str) and content.strip():
        return content
    return None


def _segment_texts(resp: Any) -> List[str]:
    """Every text fragment across choices: plain content, content parts, refusals."""
    segments: List[str] = []
    for choice in _get(resp, "choices") or []:
        message = _get(choice, "message")
        if message is None:
            continue
        content = _get(message, "content")
        if isinstance(content, str):
            segments.append(content)
        elif isinstance(content, list):
            for part in content:
                text = _get(part, "text")
                if isinstance(text, str):
                    segments.append(text)
        refusal = _get(message, "refusal")
        if isinstance(refusal, str):
            segments.append(refusal)
    return segments


def extract_text(resp: Any, model: Optional[str] = None) -> str:
    """Answer text from a chat completion response.

    Tries the first choice's content, then concatenates any text segments.
    Raises GenerativeModelError when the response carries no text at all.
    """
    text = _primary_text(resp)
    if text is not None:
        return text
    segments = _segment_texts(resp)
    if segments:
        return "".join(segments)
    raise GenerativeModelError("Generative model returned no usable text", model=model)


def sanitize_display_name(raw: str) -> str:
    name = re.sub(r"[^a-zA-Z0-9\s-]", "", raw or "").strip()
    name = re.sub(r"\s+", "-", name)
    if len(name) < 3:
        return FALLBACK_NAME
    return name[:50]


class Generator:
    """Thin wrapper over the OpenAI client for the two generative calls the pipeline makes."""

    def __init__(self, cfg: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        self._cfg = cfg or default_settings
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._cfg.OPENAI_API_KEY:
                raise GenerativeModelError("OPENAI_API_KEY is not configured", model=self._cfg.OPENAI_MODEL)
            self._client = AsyncOpenAI(api_key=self._cfg.OPENAI_API_KEY)
        return self._client

    async def answer(self, prompt: str) -> str:
        """Generate an answer for a constructed prompt; never returns blank text."""
        client = self._get_client()
        model = self._cfg.OPENAI_MODEL
        try:
            resp = await client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self._cfg.TEMPERATURE,
                max_tokens=self._cfg.MAX_OUTPUT_TOKENS,
            )
        except Exception as e:
            raise GenerativeModelError("Generative model request failed", model=model, details={"error": str(e)}) from e

        text = extract_text(resp, model=model).strip()
        return text or APOLOGY

    async def display_name(self, clean_text: str) -> str:
        """Concise 2-6 word name for a document; FALLBACK_NAME on any failure."""
        snippet = clean_text[:NAME_SNIPPET_CHARS]
        prompt = (
            "Based on this document snippet, generate a concise, descriptive filename "
            f'(2-6 words max, no extension):\n\n"{snippet}"\n\nFilename:'
        )
        try:
            client = self._get_client()
            resp = await client.chat.completions.create(
                model=self._cfg.OPENAI_NAMING_MODEL,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.3,
                max_tokens=50,
            )
            raw = extract_text(resp, model=self._cfg.OPENAI_NAMING_MODEL)
        except Exception:
            logger.warning("Display name generation failed; using fallback", exc_info=True)
            return FALLBACK_NAME
        name = sanitize_display_name(raw)
        logger.info("Generated display name: %s", name)
        return name
