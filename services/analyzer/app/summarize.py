"""
Text summarization backed by a chat-completion provider.

``Summarizer`` never raises on provider trouble: a total failure comes back
as an empty string (or an empty list of topics) and callers apply their own
fallback.
"""

from typing import Dict, List, Optional, Sequence

import httpx
import openai
from openai import AsyncOpenAI

from services.analyzer.app.normalize import normalize_output, split_topic_lines
from shared.app_logging.logger import get_logger
from shared.config.settings import AISettings
from shared.utils.retry import async_retry
from shared.utils.text import compress, strip_html, truncate

logger = get_logger("analyzer.summarize")

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
MAX_TOPIC_HEADLINES = 12
MAX_TOPICS = 6

SUMMARY_SYSTEM = (
    "You write neutral, concise news summaries for a personal journal app. "
    "Output must follow the user's constraints exactly."
)
TOPICS_SYSTEM = "Suggest short, timely journal prompts. Plain text, one per line, no bullets or numbering."

BASE_INSTRUCTIONS = (
    "IMPORTANT: You are summarizing the following text. Do NOT repeat or copy the original text. "
    "Create a NEW summary in your own words. "
    "Plain text only. No markdown or inline formatting (no *, _, #, backticks). "
    "Use your own wording; do not copy exact phrases or repeat the headline. "
    "Be neutral, concrete, and specific. No filler."
)

MODE_INSTRUCTIONS = {
    "outline": (
        "Return 5-8 one-line bullets. Each bullet should be on its own line.\n"
        'Prefix each bullet with "• " (Unicode bullet) exactly.\n'
        "No sub-bullets. No numbering. No extra commentary.\n"
        "Each bullet should be a complete, standalone sentence."
    ),
    "detailed": (
        "Write a clear 120-180 word paragraph covering: what happened, who is involved, "
        "where/when, why it matters, what's next.\n"
        "One paragraph. No bullets."
    ),
    "tldr": "Write 2-3 plain sentences (no bullets).",
}

OPENAI_RETRYABLE = (
    openai.RateLimitError,
    openai.InternalServerError,
    openai.APITimeoutError,
    openai.APIConnectionError,
)


class ProviderBusy(Exception):
    """The provider answered 429 or 5xx."""


def build_prompt(text: str, mode: str) -> str:
    instructions = MODE_INSTRUCTIONS.get(mode, MODE_INSTRUCTIONS["tldr"])
    return f"{BASE_INSTRUCTIONS}\n{instructions}\nText to summarize:\n{text}"


def build_topics_prompt(titles: Sequence[str]) -> str:
    joined = "\n".join(f"{i + 1}. {compress(t)}" for i, t in enumerate(titles))
    return (
        "Plain text only. No markdown, no numbering.\n"
        f"Give up to {MAX_TOPICS} short daily journal prompts, one per line (no bullets). "
        "Keep each under 8 words.\n"
        f"Headlines:\n{joined}"
    )


class Summarizer:
    """Summaries and topic prompts from the configured AI provider.

    Holds no per-call state, so one instance can serve concurrent builds.
    """

    def __init__(
        self,
        ai: AISettings,
        client: Optional[AsyncOpenAI] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.ai = ai
        self._client = client
        self._transport = transport

    @property
    def openai_client(self) -> Optional[AsyncOpenAI]:
        if self._client is None and self.ai.api_key:
            self._client = AsyncOpenAI(api_key=self.ai.api_key, timeout=self.ai.timeout, max_retries=0)
        return self._client

    def max_tokens(self, mode: str) -> int:
        if mode == "detailed":
            return self.ai.detailed_tokens
        if mode == "outline":
            return self.ai.outline_tokens
        return self.ai.tldr_tokens

    @async_retry(retryable_exceptions=(ProviderBusy, httpx.TimeoutException, httpx.TransportError))
    async def call_gemini(self, prompt: str, max_tokens: int) -> str:
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"maxOutputTokens": max_tokens, "temperature": 0.2},
        }
        async with httpx.AsyncClient(timeout=self.ai.timeout, transport=self._transport) as client:
            response = await client.post(
                GEMINI_URL.format(model=self.ai.gemini_model),
                params={"key": self.ai.gemini_api_key},
                json=body,
            )
        if response.status_code == 429 or response.status_code >= 500:
            raise ProviderBusy(f"Gemini HTTP {response.status_code}")
        response.raise_for_status()

        candidates = response.json().get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "\n".join(p.get("text", "") for p in parts if p.get("text")).strip()

    @async_retry(retryable_exceptions=OPENAI_RETRYABLE)
    async def call_openai(self, messages: List[Dict[str, str]], max_tokens: int) -> str:
        params = {"model": self.ai.model, "messages": messages}
        if self.ai.temperature is not None:
            params["temperature"] = self.ai.temperature

        try:
            response = await self.openai_client.chat.completions.create(**params, max_completion_tokens=max_tokens)
        except openai.BadRequestError as e:
            # older chat models only accept max_tokens
            if getattr(e, "param", None) != "max_completion_tokens":
                raise
            response = await self.openai_client.chat.completions.create(**params, max_tokens=max_tokens)

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def generate(self, system: str, prompt: str, max_tokens: int) -> str:
        """Raw model text from the first provider that answers, else ``""``."""
        if self.ai.provider == "gemini" and self.ai.gemini_api_key:
            try:
                out = await self.call_gemini(prompt, max_tokens)
                if out:
                    return out
                logger.warning("Gemini returned no text; trying OpenAI")
            except Exception as e:
                logger.warning(f"Gemini call failed: {e}")

        if self.openai_client is None:
            logger.debug("No OpenAI key configured")
            return ""
        try:
            return await self.call_openai(
                [{"role": "system", "content": system}, {"role": "user", "content": prompt}],
                max_tokens,
            )
        except Exception as e:
            logger.warning(f"OpenAI call failed: {e}")
            return ""

    async def summarize(self, text: str, mode: str = "tldr") -> str:
        clean = truncate(compress(strip_html(text or "")), self.ai.max_input_chars)
        if not clean:
            return ""
        logger.debug(f"Summarizing {len(clean)} chars in {mode} mode via {self.ai.provider}")
        out = await self.generate(SUMMARY_SYSTEM, build_prompt(clean, mode), self.max_tokens(mode))
        return normalize_output(out, mode)

    async def topic_ideas(self, titles: Sequence[str]) -> List[str]:
        headlines = [t for t in titles if t and t.strip()][:MAX_TOPIC_HEADLINES]
        if not headlines:
            return []
        out = await self.generate(TOPICS_SYSTEM, build_topics_prompt(headlines), self.ai.topic_tokens)
        return split_topic_lines(out, MAX_TOPICS)
