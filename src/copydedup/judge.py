"""Batched LLM judge for semantic copy de-duplication.

The judge is an optional companion to the MinHash engine: batches of copy are
sent to an LLM which answers with a JSON verdict listing unique items and
duplicate groups. Batches run sequentially with a fixed pause between them,
and a failed batch is recovered locally by marking its items unique.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .config import DEFAULT_JUDGE_PROMPT, JudgeSettings
from .models import TextItem

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20
DEFAULT_BATCH_DELAY_SECONDS = 0.5
DEFAULT_UNIQUE_REASON = "unique copy"

ProgressCallback = Callable[[int, int, str], None]


class JudgeError(RuntimeError):
    """LLM judge failure surfaced to the caller."""


class JudgeQuotaError(JudgeError):
    """The provider reported exhausted quota (HTTP 429 or a quota message)."""


class JudgeParseError(JudgeError):
    """The LLM response held no usable JSON object."""


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CopyItemForJudge(_CamelModel):
    id: str
    index: int
    text: str
    chinese_text: Optional[str] = None


class JudgeUniqueItem(_CamelModel):
    index: int
    reason: str = DEFAULT_UNIQUE_REASON


class JudgeDuplicateGroup(_CamelModel):
    keep_index: int
    remove_indices: List[int] = Field(default_factory=list)
    reason: str = ""


class JudgeResult(_CamelModel):
    unique_indices: List[int] = Field(default_factory=list)
    unique_items: List[JudgeUniqueItem] = Field(default_factory=list)
    duplicate_groups: List[JudgeDuplicateGroup] = Field(default_factory=list)
    total_processed: int = 0
    unique_count: int = 0
    duplicate_count: int = 0

    def removed_indices(self) -> Set[int]:
        return {idx for group in self.duplicate_groups for idx in group.remove_indices}


def to_judge_items(items: Sequence[TextItem], start: int = 1) -> List[CopyItemForJudge]:
    return [
        CopyItemForJudge(id=item.id, index=start + offset, text=item.text, chinese_text=item.chinese_text)
        for offset, item in enumerate(items)
    ]


# Response parsing ----------------------------------------------------------


@dataclass(frozen=True)
class ParseOk:
    value: Dict[str, Any]


@dataclass(frozen=True)
class ParseFailure:
    error: str


ParseResult = Union[ParseOk, ParseFailure]


def _parse_object(text: str) -> ParseResult:
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        return ParseFailure(f"invalid JSON: {exc}")
    if not isinstance(value, dict):
        return ParseFailure(f"expected a JSON object, got {type(value).__name__}")
    return ParseOk(value)


def extract_json_object(text: str) -> Optional[str]:
    """First balanced ``{...}`` substring, skipping braces inside JSON strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : pos + 1]
        start = text.find("{", start + 1)
    return None


def parse_judge_response(text: str) -> ParseResult:
    """Direct parse first, then one more attempt on the embedded object."""
    direct = _parse_object(text)
    if isinstance(direct, ParseOk):
        return direct
    fragment = extract_json_object(text)
    if fragment is None:
        return ParseFailure(f"no JSON object found ({direct.error})")
    return _parse_object(fragment)


def build_batch_result(parsed: Dict[str, Any], items: Sequence[CopyItemForJudge]) -> JudgeResult:
    """Normalize one batch verdict; indices not removed are treated as unique."""
    try:
        unique_items = [JudgeUniqueItem.model_validate(u) for u in parsed.get("uniqueItems") or []]
        for u in unique_items:
            if not u.reason:
                u.reason = DEFAULT_UNIQUE_REASON
        groups = [JudgeDuplicateGroup.model_validate(g) for g in parsed.get("duplicateGroups") or []]
        raw_indices = parsed.get("uniqueIndices")
        if isinstance(raw_indices, list):
            unique_indices = [int(i) for i in raw_indices]
        else:
            unique_indices = [u.index for u in unique_items]
    except (ValidationError, TypeError, ValueError) as exc:
        raise JudgeParseError(f"Judge response has an unexpected shape: {exc}") from exc

    removed = {idx for g in groups for idx in g.remove_indices}
    listed = set(unique_indices)
    for item in items:
        if item.index not in removed and item.index not in listed:
            unique_indices.append(item.index)
            listed.add(item.index)

    return JudgeResult(
        unique_indices=unique_indices,
        unique_items=unique_items,
        duplicate_groups=groups,
        total_processed=len(items),
        unique_count=len(unique_indices),
        duplicate_count=len(removed),
    )


# LLM transport -------------------------------------------------------------


class LLM(ABC):
    @abstractmethod
    async def complete(self, *, prompt: str, system_prompt: str) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class GeminiLLM(LLM):
    """Gemini ``generateContent`` over REST."""

    api_key: str
    model: str = "gemini-2.0-flash"
    api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_seconds: float = 60.0

    async def complete(self, *, prompt: str, system_prompt: str) -> str:
        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        url = f"{self.api_base.rstrip('/')}/models/{self.model}:generateContent"
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            resp = await client.post(url, json=payload, headers={"x-goog-api-key": self.api_key})
            resp.raise_for_status()
            data = resp.json()
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)


def build_llm(settings: JudgeSettings) -> Optional[LLM]:
    """The configured LLM, or None when no API key is set."""
    if not settings.api_key:
        return None
    return GeminiLLM(
        api_key=settings.api_key,
        model=settings.model,
        api_base=settings.api_base,
        timeout_seconds=settings.timeout_seconds,
    )


# Judging -------------------------------------------------------------------


def build_batch_prompt(items: Sequence[CopyItemForJudge]) -> str:
    listing = "\n\n".join(f"[{item.index}] {item.text}" for item in items)
    return (
        f"Analyse the following {len(items)} items, find repeated or similar copy and return the de-duplication result.\n\n"
        f"Items:\n{listing}\n\n"
        "Reply strictly in JSON with no other content."
    )


def _is_quota_message(message: str) -> bool:
    return "429" in message or "quota" in message.lower()


def _classify_failure(message: str) -> JudgeError:
    if _is_quota_message(message):
        return JudgeQuotaError(f"API quota exhausted, switch the API key or retry later ({message})")
    return JudgeError(f"LLM analysis failed: {message}")


async def judge_batch(
    items: Sequence[CopyItemForJudge],
    llm: LLM,
    system_prompt: str = DEFAULT_JUDGE_PROMPT,
) -> JudgeResult:
    prompt = build_batch_prompt(items)
    try:
        raw = await llm.complete(prompt=prompt, system_prompt=system_prompt)
    except httpx.HTTPStatusError as exc:
        raise _classify_failure(f"HTTP {exc.response.status_code}: {exc.response.text[:300]}") from exc
    except Exception as exc:  # noqa: BLE001
        raise _classify_failure(str(exc) or type(exc).__name__) from exc

    response_text = (raw or "").strip() or "{}"
    logger.debug("Judge raw response: %.500s", response_text)
    parsed = parse_judge_response(response_text)
    if isinstance(parsed, ParseFailure):
        if _is_quota_message(response_text):
            raise JudgeQuotaError(f"API quota exhausted, switch the API key or retry later ({response_text[:200]})")
        raise JudgeParseError(f"Could not parse judge JSON: {parsed.error}")
    return build_batch_result(parsed.value, items)


async def judge_with_llm(
    items: Sequence[CopyItemForJudge],
    llm: LLM,
    system_prompt: str = DEFAULT_JUDGE_PROMPT,
    batch_size: int = DEFAULT_BATCH_SIZE,
    batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
    on_progress: Optional[ProgressCallback] = None,
) -> JudgeResult:
    """Judge ``items`` in sequential batches.

    A single batch propagates its errors. With several batches a failing batch
    is logged and its items are counted as unique.
    """
    if len(items) <= batch_size:
        if on_progress:
            on_progress(0, 1, "Analysing copy...")
        result = await judge_batch(items, llm, system_prompt)
        if on_progress:
            on_progress(1, 1, "Analysis complete")
        return result

    merged = JudgeResult(total_processed=len(items))
    total_batches = (len(items) + batch_size - 1) // batch_size
    for batch_idx, offset in enumerate(range(0, len(items), batch_size)):
        batch = items[offset : offset + batch_size]
        if on_progress:
            on_progress(batch_idx, total_batches, f"Analysing batch {batch_idx + 1}/{total_batches}...")
        try:
            batch_result = await judge_batch(batch, llm, system_prompt)
            merged.unique_indices.extend(batch_result.unique_indices)
            merged.unique_items.extend(batch_result.unique_items)
            merged.duplicate_groups.extend(batch_result.duplicate_groups)
        except JudgeError as exc:
            logger.error("Judge batch %d/%d failed, marking its items unique: %s", batch_idx + 1, total_batches, exc)
            merged.unique_indices.extend(item.index for item in batch)
        if offset + batch_size < len(items):
            await asyncio.sleep(batch_delay_seconds)

    removed = merged.removed_indices()
    merged.unique_count = len(items) - len(removed)
    merged.duplicate_count = len(removed)
    if on_progress:
        on_progress(total_batches, total_batches, "Analysis complete")
    return merged


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_BATCH_DELAY_SECONDS",
    "JudgeError",
    "JudgeQuotaError",
    "JudgeParseError",
    "CopyItemForJudge",
    "JudgeUniqueItem",
    "JudgeDuplicateGroup",
    "JudgeResult",
    "to_judge_items",
    "ParseOk",
    "ParseFailure",
    "ParseResult",
    "extract_json_object",
    "parse_judge_response",
    "build_batch_result",
    "LLM",
    "GeminiLLM",
    "build_llm",
    "build_batch_prompt",
    "judge_batch",
    "judge_with_llm",
]
