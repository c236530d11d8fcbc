"""
Concurrent translation orchestration.

Lines are chunked into small batches, each batch is numbered, sent to the
completion provider, validated for structural integrity and retried until
it comes back whole. Translated words are joined back to the original words
by id, so the provider never supplies geometry:

    sent      [[{id: 1, "밥"}, {id: 2, "먹으러"}, {id: 3, "가자"}]]
    received  [[{id: 3, "Let's"}, {id: 2, "go"}, {id: 1, "eat"}]]
    result    "Let's" at box of id 3, "go" at box of id 2, "eat" at box of id 1
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_exception_type, stop_after_attempt, wait_fixed

from relayout.core import prompts
from relayout.core.language import Language, language_name
from relayout.core.markdown import extract_markdown
from relayout.errors import CollaboratorFailure, ExhaustedRetries, RelayoutError, SchemaViolation
from relayout.models.segment import LineSegment, ParagraphSegment, WordSegment

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 2
DEFAULT_MAX_RETRIES = 4
DEFAULT_RETRY_INTERVAL = 0.5
DEFAULT_MAX_CONCURRENCY = 8


class CompletionProvider(Protocol):
    async def complete(
        self,
        system_prompt: str,
        examples: Sequence[prompts.Example],
        user_payload: str,
        images: Sequence[bytes] = (),
    ) -> str: ...


class BatchState(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    VALIDATED = "validated"
    RETRY = "retry"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = DEFAULT_MAX_RETRIES
    # Seconds between attempts.
    interval: float = DEFAULT_RETRY_INTERVAL

    @property
    def attempts(self) -> int:
        return self.max_retries + 1


class SegmentWithId(BaseModel):
    """Wire form of one word, both directions."""
    model_config = ConfigDict(extra="ignore")

    id: int
    # Empty text means the provider chose to drop the word.
    text: str = ""


@dataclass(frozen=True)
class IdentifiedWord:
    id: int
    word: WordSegment


_SEGMENTS = TypeAdapter(List[List[SegmentWithId]])
_GROUPED_IDS = TypeAdapter(List[List[List[int]]])
_TEXT_MAP = TypeAdapter(Dict[str, str])


# --- pure helpers ---------------------------------------------------------


def chunk_lines(lines: Sequence[LineSegment], size: int = DEFAULT_BATCH_SIZE) -> List[List[LineSegment]]:
    size = max(1, size)
    return [list(lines[i:i + size]) for i in range(0, len(lines), size)]


def assign_ids(batch: Sequence[LineSegment]) -> List[List[IdentifiedWord]]:
    """Number every word of the batch 1..n in reading order."""
    numbered: List[List[IdentifiedWord]] = []
    next_id = 1
    for line in batch:
        row = []
        for word in line.words:
            row.append(IdentifiedWord(next_id, word))
            next_id += 1
        numbered.append(row)
    return numbered


def to_payload(numbered: Sequence[Sequence[IdentifiedWord]]) -> str:
    body = [[{"id": w.id, "text": w.word.text} for w in line] for line in numbered]
    return json.dumps(body, ensure_ascii=False)


def extract_json(text: str, opening: str = "[", closing: str = "]") -> str:
    """
    Pull the JSON document out of a completion: a ```json fenced block when
    present, otherwise the outermost bracketed span.
    """
    s = (text or "").strip()
    fence = s.find("```json")
    if fence >= 0:
        start = fence + len("```json")
        end = s.rfind("```")
        if end <= start:
            raise SchemaViolation("unterminated ```json block in response")
        return s[start:end].strip()
    i = s.find(opening)
    j = s.rfind(closing)
    if i >= 0 and j > i:
        return s[i:j + 1]
    raise SchemaViolation("response holds no JSON document")


def parse_segments(response: str) -> List[List[SegmentWithId]]:
    try:
        return _SEGMENTS.validate_json(extract_json(response))
    except ValidationError as e:
        raise SchemaViolation(f"unparsable translation response: {e.error_count()} errors") from e


def validate_translated_segments(
    sent: Sequence[Sequence[IdentifiedWord]],
    received: Sequence[Sequence[SegmentWithId]],
) -> None:
    if len(sent) != len(received):
        raise SchemaViolation(f"invalid response length: sent {len(sent)} lines, got {len(received)}")
    for i, (out_line, in_line) in enumerate(zip(sent, received)):
        if len(out_line) != len(in_line):
            raise SchemaViolation(f"invalid response length at line {i}: sent {len(out_line)} words, got {len(in_line)}")
    sent_ids = Counter(w.id for line in sent for w in line)
    received_ids = Counter(s.id for line in received for s in line)
    if sent_ids != received_ids:
        raise SchemaViolation(f"invalid id set: sent {sorted(sent_ids.elements())}, got {sorted(received_ids.elements())}")


def reattach(
    sent: Sequence[Sequence[IdentifiedWord]],
    received: Sequence[Sequence[SegmentWithId]],
) -> List[LineSegment]:
    """
    Rebuild the batch's lines from a validated response. Every translated
    word takes position, style and font size from the sent word with the
    same id, and goes back to the line that id was sent in.
    """
    by_id: Dict[int, WordSegment] = {}
    line_of: Dict[int, int] = {}
    for index, line in enumerate(sent):
        for w in line:
            by_id[w.id] = w.word
            line_of[w.id] = index

    rebuilt: List[List[WordSegment]] = [[] for _ in sent]
    for line in received:
        for segment in line:
            original = by_id[segment.id]
            rebuilt[line_of[segment.id]].append(original.with_text(segment.text))
    return [LineSegment(words=words) for words in rebuilt]


def validate_ids(groups: Sequence[Sequence[Sequence[int]]], n: int) -> None:
    flat = [i for paragraph in groups for sentence in paragraph for i in sentence]
    if len(flat) != n:
        raise SchemaViolation(f"invalid id count: expected {n}, got {len(flat)}")
    if set(flat) != set(range(n)):
        raise SchemaViolation(f"ids do not cover 0..{n - 1}: {sorted(flat)}")


def parse_grouped_ids(response: str) -> List[List[List[int]]]:
    try:
        return _GROUPED_IDS.validate_json(extract_json(response))
    except ValidationError as e:
        raise SchemaViolation(f"unparsable grouping response: {e.error_count()} errors") from e


# --- retry ----------------------------------------------------------------


def _log_retry(label: str, policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            f"[{label}] {BatchState.RETRY.value}: attempt {state.attempt_number}/{policy.attempts} failed: {error}"
        )
    return before_sleep


async def with_retry(label: str, policy: RetryPolicy, call: Callable[[], Awaitable[T]]) -> T:
    """
    Run call until it succeeds, sleeping a constant interval between
    attempts. Schema and collaborator errors are retried; anything else
    propagates at once. Exhaustion raises ExhaustedRetries from the last error.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.attempts),
        wait=wait_fixed(policy.interval),
        retry=retry_if_exception_type((SchemaViolation, CollaboratorFailure)),
        before_sleep=_log_retry(label, policy),
    )
    try:
        return await retrying(call)
    except RetryError as e:
        last = e.last_attempt.exception()
        logger.error(f"[{label}] {BatchState.FAILED.value} after {policy.attempts} attempts: {last}")
        raise ExhaustedRetries(f"{label}: gave up after {policy.attempts} attempts: {last}", attempts=policy.attempts) from last


async def gather_or_cancel(awaitables: Sequence[Awaitable[T]]) -> List[T]:
    """Gather in dispatch order; the first failure cancels the rest."""
    tasks = [asyncio.ensure_future(a) for a in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


# --- orchestrator ---------------------------------------------------------


class TranslationOrchestrator:
    def __init__(
        self,
        provider: CompletionProvider,
        target_language: Language = Language.EN_US,
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry: Optional[RetryPolicy] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        examples: Optional[prompts.Examples] = None,
    ):
        self.provider = provider
        self.target_language = target_language
        self.batch_size = max(1, batch_size)
        self.retry = retry or RetryPolicy()
        self.max_concurrency = max(1, max_concurrency)
        self.examples = examples or prompts.Examples()

    @property
    def language_name(self) -> str:
        return language_name(self.target_language)

    async def _complete(
        self,
        system_prompt: str,
        examples: Sequence[prompts.Example],
        payload: str,
        images: Sequence[bytes] = (),
    ) -> str:
        try:
            return await self.provider.complete(system_prompt, examples, payload, images)
        except RelayoutError:
            raise
        except Exception as e:
            raise CollaboratorFailure(f"completion provider failed: {e}") from e

    # sentence grouping

    async def group_lines(self, paragraphs: Sequence[ParagraphSegment]) -> List[LineSegment]:
        """
        Merge lines that read as one sentence so they are translated together.
        Single-line paragraphs pass through untouched and come first.
        """
        single = [p.lines[0] for p in paragraphs if len(p.lines) == 1]
        multi = [p for p in paragraphs if len(p.lines) > 1]
        if not multi:
            return single

        lines: List[LineSegment] = []
        body: List[List[Dict[str, Any]]] = []
        for paragraph in multi:
            row = []
            for line in paragraph.lines:
                row.append({"id": len(lines), "text": "".join(w.text for w in line.words)})
                lines.append(line)
            body.append(row)
        payload = json.dumps(body, ensure_ascii=False)

        async def attempt() -> List[List[List[int]]]:
            logger.debug(f"[group_lines] {BatchState.IN_FLIGHT.value}: {len(lines)} lines")
            response = await self._complete(prompts.GROUP_LINES_PROMPT, [self.examples.grouped_lines], payload)
            groups = parse_grouped_ids(response)
            validate_ids(groups, len(lines))
            return groups

        groups = await with_retry("group_lines", self.retry, attempt)
        logger.debug(f"[group_lines] {BatchState.VALIDATED.value}")

        grouped = list(single)
        for paragraph in groups:
            for sentence in paragraph:
                words = [
                    WordSegment(w.text, w.position, 0.0, w.style)
                    for i in sentence
                    for w in lines[i].words
                ]
                grouped.append(LineSegment(words=words))
        logger.info(f"Grouped {len(lines)} lines of {len(multi)} paragraphs into {len(grouped) - len(single)} sentences")
        return grouped

    # batch translation

    async def translate_batch(self, index: int, batch: Sequence[LineSegment]) -> List[LineSegment]:
        label = f"batch {index}"
        numbered = assign_ids(batch)
        payload = to_payload(numbered)
        system_prompt = prompts.translate_segments_prompt(self.language_name)
        logger.debug(f"[{label}] {BatchState.PENDING.value}: {len(batch)} lines")

        async def attempt() -> List[List[SegmentWithId]]:
            logger.debug(f"[{label}] {BatchState.IN_FLIGHT.value}")
            response = await self._complete(system_prompt, prompts.TRANSLATE_SEGMENTS_EXAMPLES, payload)
            received = parse_segments(response)
            validate_translated_segments(numbered, received)
            return received

        received = await with_retry(label, self.retry, attempt)
        logger.debug(f"[{label}] {BatchState.VALIDATED.value}")
        return reattach(numbered, received)

    async def translate_lines(self, lines: Sequence[LineSegment]) -> List[LineSegment]:
        batches = chunk_lines(lines, self.batch_size)
        if not batches:
            return []
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(index: int, batch: List[LineSegment]) -> List[LineSegment]:
            async with semaphore:
                return await self.translate_batch(index, batch)

        logger.info(f"Translating {len(lines)} lines in {len(batches)} batches into {self.target_language.value}")
        results = await gather_or_cancel([run(i, b) for i, b in enumerate(batches)])
        return [line for result in results for line in result]

    async def translate_paragraphs(self, paragraphs: Sequence[ParagraphSegment]) -> List[LineSegment]:
        lines = await self.group_lines(paragraphs)
        return await self.translate_lines(lines)

    # plain text flows

    async def translate_paragraph_texts(self, paragraphs: Sequence[ParagraphSegment]) -> List[Tuple[str, str]]:
        """Translate whole paragraphs; returns (original, translated) pairs in order."""
        texts = {str(i): p.text for i, p in enumerate(paragraphs)}
        if not texts:
            return []
        payload = json.dumps(texts, ensure_ascii=False)
        system_prompt = prompts.translate_texts_prompt(self.language_name)

        async def attempt() -> Dict[str, str]:
            response = await self._complete(system_prompt, [], payload)
            try:
                translated = _TEXT_MAP.validate_json(extract_json(response, "{", "}"))
            except ValidationError as e:
                raise SchemaViolation(f"unparsable text map: {e.error_count()} errors") from e
            if len(translated) != len(texts):
                raise SchemaViolation(f"invalid response length: sent {len(texts)}, got {len(translated)}")
            if set(translated) != set(texts):
                raise SchemaViolation("translated keys do not match the sent keys")
            return translated

        translated = await with_retry("paragraph texts", self.retry, attempt)
        return [(texts[key], translated[key]) for key in texts]

    async def to_markdown(self, grid_text: str, image_png: bytes) -> str:
        """Ask the provider to turn the aligned grid (plus the image) into markdown."""

        async def attempt() -> str:
            response = await self._complete(
                prompts.TO_MARKDOWN_PROMPT, [self.examples.to_markdown], grid_text, [image_png]
            )
            return extract_markdown(response)

        return await with_retry("to_markdown", self.retry, attempt)

    async def translate_markdown(self, markdown: str) -> str:
        return await self._complete(prompts.translate_markdown_prompt(self.language_name), [], markdown)
