# moodlist/llm_helper.py
# ---------------------------------------------------------------------------
# Prompt â tags/mood/energy. Sources are tried in priority order:
#   OpenAI chat completion (strict JSON) â Hugging Face inference (comma list)
#   â fixed defaults. Nothing here raises past TagChain.analyze().
# ---------------------------------------------------------------------------

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Union

import httpx

from moodlist.schemas import MAX_TAGS, PromptAnalysis

log = logging.getLogger("moodlist.tags")

DEFAULT_TAGS: tuple = ("pop", "chill", "indie")

HF_INFERENCE_URL = "https://api-inference.huggingface.co/models/{model}"

ANALYSIS_SYSTEM_PROMPT = (
    "Extract the listener's mood (string), energy (number between 0 and 1) and up to 3 "
    "music tags (array of short lowercase genre or mood words, e.g. \"jazz\", \"chill\") "
    "from the text. Return only valid JSON of the form "
    '{"mood": "...", "energy": 0.5, "tags": ["...", "..."]}.'
)

HF_PROMPT_TEMPLATE = (
    "List 3 music genres or mood tags that fit this situation, "
    "as a comma-separated list with nothing else.\n"
    "Situation: {prompt}\n"
    "Tags:"
)


# ---------------------------------------------------------------------------
# Normalisation helpers
# ---------------------------------------------------------------------------
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_LABEL_RE = re.compile(r"^\s*(tags?|genres?)\s*:\s*", re.IGNORECASE)
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def normalize_tags(raw: Union[str, Iterable[Any], None], limit: int = MAX_TAGS) -> List[str]:
    """Trim, lowercase, drop empties and duplicates, cap at ``limit``."""
    if raw is None:
        return []
    if isinstance(raw, str):
        items: Iterable[Any] = raw.split(",")
    else:
        items = raw

    out: List[str] = []
    for item in items:
        if not isinstance(item, str):
            continue
        tag = item.strip().strip("\"'.").strip().lower()
        if tag and tag not in out:
            out.append(tag)
        if len(out) >= limit:
            break
    return out


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(f) else f


def parse_analysis_json(content: str) -> dict:
    text = _FENCE_RE.sub("", (content or "").strip())
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def parse_comma_list(text: str) -> List[str]:
    """Commas and line breaks both separate tags; list bullets and a "Tags:" label are dropped."""
    items = []
    for line in (text or "").splitlines():
        line = _LABEL_RE.sub("", line)
        items.extend(_BULLET_RE.sub("", part) for part in line.split(","))
    return normalize_tags(items)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------
class TagSource(Protocol):
    name: str

    async def analyze(self, prompt: str) -> Optional[PromptAnalysis]:
        """Return an analysis, ``None`` for an empty answer, or raise on failure."""
        ...


class OpenAITagSource:
    name = "openai"

    def __init__(self, client: Any, model: str = "gpt-4o-mini"):
        # client: openai.AsyncOpenAI (or anything with .chat.completions.create)
        self.client = client
        self.model = model

    async def analyze(self, prompt: str) -> Optional[PromptAnalysis]:
        res = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0.3,
        )
        data = parse_analysis_json(res.choices[0].message.content or "")
        tags = normalize_tags(data.get("tags") or data.get("genres"))
        if not tags:
            return None
        mood = data.get("mood")
        return PromptAnalysis(
            tags=tags,
            mood=mood.strip() if isinstance(mood, str) and mood.strip() else None,
            energy=_to_float(data.get("energy")),
            source=self.name,
        )


class HuggingFaceTagSource:
    name = "huggingface"

    def __init__(self, http: httpx.AsyncClient, api_key: str, model: str = "google/flan-t5-large"):
        self.http = http
        self.api_key = api_key
        self.model = model

    async def analyze(self, prompt: str) -> Optional[PromptAnalysis]:
        r = await self.http.post(
            HF_INFERENCE_URL.format(model=self.model),
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "inputs": HF_PROMPT_TEMPLATE.format(prompt=prompt),
                "parameters": {"max_new_tokens": 30, "return_full_text": False},
            },
        )
        r.raise_for_status()
        payload = r.json()
        if isinstance(payload, dict) and payload.get("error"):
            raise ValueError(f"inference error: {payload['error']}")
        if isinstance(payload, list) and payload:
            payload = payload[0]
        text = payload.get("generated_text", "") if isinstance(payload, dict) else ""
        tags = parse_comma_list(text)
        if not tags:
            return None
        return PromptAnalysis(tags=tags, source=self.name)


class StaticTagSource:
    name = "default"

    def __init__(self, tags: Sequence[str] = DEFAULT_TAGS):
        self.tags = normalize_tags(list(tags)) or list(DEFAULT_TAGS)

    def fixed(self) -> PromptAnalysis:
        return PromptAnalysis(tags=list(self.tags), source=self.name)

    async def analyze(self, prompt: str) -> Optional[PromptAnalysis]:
        return self.fixed()


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------
class TagChain:
    """Ordered fallback over tag sources; always ends on the static defaults."""

    def __init__(self, sources: Iterable[TagSource], default: Optional[StaticTagSource] = None):
        self.default = default or StaticTagSource()
        self.sources: List[TagSource] = [s for s in sources if not isinstance(s, StaticTagSource)]
        self.sources.append(self.default)

    @property
    def names(self) -> List[str]:
        return [s.name for s in self.sources]

    async def analyze(self, prompt: str) -> PromptAnalysis:
        for source in self.sources:
            try:
                analysis = await source.analyze(prompt)
            except Exception as e:
                log.warning("[tags] %s failed: %s", source.name, e)
                continue
            if analysis is not None and analysis.tags:
                log.info("[tags] %s â %s", source.name, analysis.tags)
                return analysis
            log.warning("[tags] %s returned no tags", source.name)
        return self.default.fixed()


def build_tag_chain(settings: Any, http: httpx.AsyncClient, openai_client: Any = None) -> TagChain:
    sources: List[TagSource] = []
    if settings.openai_api_key or openai_client is not None:
        if openai_client is None:
            from openai import AsyncOpenAI

            # shares the request client so it closes with it
            openai_client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.http_timeout,
                                        http_client=http)
        sources.append(OpenAITagSource(openai_client, model=settings.openai_model))
    if settings.hf_api_key:
        sources.append(HuggingFaceTagSource(http, settings.hf_api_key, model=settings.hf_model))
    if not sources:
        log.warning("[tags] no LLM keys configured; using default tags only")
    return TagChain(sources)


__all__ = [
    "DEFAULT_TAGS",
    "normalize_tags",
    "parse_comma_list",
    "OpenAITagSource",
    "HuggingFaceTagSource",
    "StaticTagSource",
    "TagChain",
    "build_tag_chain",
]
