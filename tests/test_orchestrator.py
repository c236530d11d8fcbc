import asyncio
import json

import pytest

from relayout.core.orchestrator import (
    IdentifiedWord,
    RetryPolicy,
    SegmentWithId,
    TranslationOrchestrator,
    assign_ids,
    chunk_lines,
    gather_or_cancel,
    parse_segments,
    reattach,
    to_payload,
    validate_ids,
    validate_translated_segments,
)
from relayout.errors import ExhaustedRetries, InvalidInput, SchemaViolation

from conftest import ScriptedCompletion, echo_translation, line, paragraph, word

NO_WAIT = RetryPolicy(max_retries=4, interval=0)


def make_lines(*texts):
    return [line(word(t, 0, i * 30, 50, i * 30 + 20)) for i, t in enumerate(texts)]


def orchestrator(provider, **kwargs):
    kwargs.setdefault("retry", NO_WAIT)
    return TranslationOrchestrator(provider, **kwargs)


def test_chunk_lines():
    lines = make_lines("a", "b", "c")
    assert [len(c) for c in chunk_lines(lines, 2)] == [2, 1]
    assert [len(c) for c in chunk_lines(lines, 0)] == [1, 1, 1]
    assert chunk_lines([], 2) == []


def test_assign_ids_numbers_words_in_reading_order():
    batch = [line(word("a", 0, 0, 10, 10), word("b", 12, 0, 20, 10)), line(word("c", 0, 20, 10, 30))]
    numbered = assign_ids(batch)
    assert [[w.id for w in ln] for ln in numbered] == [[1, 2], [3]]
    assert json.loads(to_payload(numbered)) == [[{"id": 1, "text": "a"}, {"id": 2, "text": "b"}], [{"id": 3, "text": "c"}]]


def test_to_payload_keeps_non_ascii():
    numbered = assign_ids([line(word("밥", 0, 0, 10, 10))])
    assert "밥" in to_payload(numbered)


def test_parse_segments_accepts_fenced_and_bare_json():
    fenced = 'Sure!\n```json\n[[{"id": 1, "text": "hi"}]]\n```'
    bare = 'Here: [[{"id": 1, "text": "hi"}]] done'
    assert parse_segments(fenced) == [[SegmentWithId(id=1, text="hi")]]
    assert parse_segments(bare) == [[SegmentWithId(id=1, text="hi")]]


def test_parse_segments_rejects_garbage():
    with pytest.raises(SchemaViolation):
        parse_segments("I cannot translate this")
    with pytest.raises(SchemaViolation):
        parse_segments('[{"id": "x"}]')


def sent_batch():
    return assign_ids([line(word("밥", 0, 0, 20, 20), word("먹으러", 25, 0, 60, 20), word("가자", 65, 0, 90, 20))])


def test_validation_rejects_wrong_shapes():
    sent = sent_batch()
    with pytest.raises(SchemaViolation):
        validate_translated_segments(sent, [])
    with pytest.raises(SchemaViolation):
        validate_translated_segments(sent, [[SegmentWithId(id=1), SegmentWithId(id=2)]])
    with pytest.raises(SchemaViolation):
        validate_translated_segments(sent, [[SegmentWithId(id=1), SegmentWithId(id=2), SegmentWithId(id=9)]])
    with pytest.raises(SchemaViolation):
        validate_translated_segments(sent, [[SegmentWithId(id=1), SegmentWithId(id=1), SegmentWithId(id=2)]])


def test_reattach_follows_ids_not_slots():
    sent = sent_batch()
    received = [[SegmentWithId(id=3, text="Let's"), SegmentWithId(id=2, text="go"), SegmentWithId(id=1, text="eat")]]
    validate_translated_segments(sent, received)
    [result] = reattach(sent, received)
    assert [w.text for w in result.words] == ["Let's", "go", "eat"]
    assert [w.position.left for w in result.words] == [65, 25, 0]


def test_reattach_keeps_dropped_words_with_empty_text():
    sent = sent_batch()
    received = [[SegmentWithId(id=1, text="rice"), SegmentWithId(id=2, text=""), SegmentWithId(id=3, text="")]]
    [result] = reattach(sent, received)
    assert [w.text for w in result.words] == ["rice", "", ""]


def test_validate_ids():
    validate_ids([[[0, 1]], [[2]]], 3)
    with pytest.raises(SchemaViolation):
        validate_ids([[[0, 1]]], 3)
    with pytest.raises(SchemaViolation):
        validate_ids([[[0, 0, 1]]], 3)


def test_translate_lines_reorders_by_id():
    batch = [line(word("밥", 0, 0, 20, 20), word("먹으러", 25, 0, 60, 20), word("가자", 65, 0, 90, 20))]
    provider = ScriptedCompletion(json.dumps([[
        {"id": 2, "text": "Let's"}, {"id": 1, "text": "go"}, {"id": 3, "text": "eat"},
    ]]))
    result = asyncio.run(orchestrator(provider, batch_size=3).translate_lines(batch))
    assert [w.text for w in result[0].words] == ["Let's", "go", "eat"]
    assert [w.position.left for w in result[0].words] == [25, 0, 65]
    assert len(provider.calls) == 1


def test_missing_ids_exhaust_the_retry_budget():
    provider = ScriptedCompletion('[[{"id": 1, "text": "hi"}]]')
    lines = [line(word("a", 0, 0, 10, 10), word("b", 12, 0, 20, 10))]
    with pytest.raises(ExhaustedRetries) as info:
        asyncio.run(orchestrator(provider).translate_lines(lines))
    assert info.value.attempts == 5
    assert isinstance(info.value.__cause__, SchemaViolation)
    assert len(provider.calls) == 5


def test_transient_schema_failure_then_success():
    provider = ScriptedCompletion("not json", echo_translation())
    result = asyncio.run(orchestrator(provider).translate_lines(make_lines("hello")))
    assert [ln.text for ln in result] == ["HELLO"]
    assert len(provider.calls) == 2


def test_provider_exception_is_retried():
    provider = ScriptedCompletion(RuntimeError("503 unavailable"), echo_translation())
    result = asyncio.run(orchestrator(provider).translate_lines(make_lines("hello")))
    assert [ln.text for ln in result] == ["HELLO"]
    assert len(provider.calls) == 2


def test_results_keep_dispatch_order():
    # Earlier batches finish last.
    delays = {"a": 0.05, "b": 0.02, "c": 0.0}

    def delay(payload):
        return delays[json.loads(payload)[0][0]["text"]]

    provider = ScriptedCompletion(echo_translation(), delay=delay)
    result = asyncio.run(orchestrator(provider, batch_size=1).translate_lines(make_lines("a", "b", "c")))
    assert [ln.text for ln in result] == ["A", "B", "C"]


def test_invalid_input_is_not_retried():
    def answer(payload):
        raise InvalidInput("bad segment")

    provider = ScriptedCompletion(answer)
    with pytest.raises(InvalidInput):
        asyncio.run(orchestrator(provider).translate_lines(make_lines("a")))
    assert len(provider.calls) == 1


def test_first_failure_cancels_siblings():
    async def scenario():
        cancelled = []

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        async def failing():
            await asyncio.sleep(0)
            raise InvalidInput("boom")

        with pytest.raises(InvalidInput):
            await gather_or_cancel([slow(), failing()])
        await asyncio.sleep(0.01)
        return cancelled

    assert asyncio.run(scenario()) == [True]


def test_concurrency_is_bounded():
    provider = ScriptedCompletion(echo_translation(), delay=lambda payload: 0.01)
    lines = make_lines("a", "b", "c", "d")
    asyncio.run(orchestrator(provider, batch_size=1, max_concurrency=1).translate_lines(lines))
    assert provider.max_in_flight == 1

    provider = ScriptedCompletion(echo_translation(), delay=lambda payload: 0.01)
    asyncio.run(orchestrator(provider, batch_size=1, max_concurrency=8).translate_lines(lines))
    assert provider.max_in_flight == 4


def test_group_lines_skips_provider_for_single_line_paragraphs():
    provider = ScriptedCompletion("unused")
    paragraphs = [paragraph(ln) for ln in make_lines("a", "b")]
    grouped = asyncio.run(orchestrator(provider).group_lines(paragraphs))
    assert [ln.text for ln in grouped] == ["a", "b"]
    assert provider.calls == []


def test_group_lines_merges_sentence_lines():
    title = paragraph(line(word("Title", 0, 0, 50, 20)))
    body = paragraph(line(word("Hello", 0, 40, 50, 60, font_size=14.0)), line(word("world", 0, 65, 50, 85, font_size=14.0)))
    provider = ScriptedCompletion("[[[0, 1]]]")

    grouped = asyncio.run(orchestrator(provider).group_lines([body, title]))

    assert [ln.text for ln in grouped] == ["Title", "Hello world"]
    assert [w.font_size for w in grouped[1].words] == [0.0, 0.0]
    sent = json.loads(provider.calls[0][2])
    assert sent == [[{"id": 0, "text": "Hello"}, {"id": 1, "text": "world"}]]


def test_group_lines_retries_incomplete_ids():
    body = paragraph(*make_lines("one", "two"))
    provider = ScriptedCompletion("[[[0]]]", "[[[0], [1]]]")
    grouped = asyncio.run(orchestrator(provider).group_lines([body]))
    assert [ln.text for ln in grouped] == ["one", "two"]
    assert len(provider.calls) == 2


def test_translate_paragraphs_end_to_end():
    provider = ScriptedCompletion(echo_translation(lambda t: t + "!"))
    paragraphs = [paragraph(ln) for ln in make_lines("a", "b", "c")]
    result = asyncio.run(orchestrator(provider).translate_paragraphs(paragraphs))
    assert [ln.text for ln in result] == ["a!", "b!", "c!"]


def test_translate_paragraph_texts_pairs():
    def answer(payload):
        return json.dumps({k: v.upper() for k, v in json.loads(payload).items()})

    provider = ScriptedCompletion(answer)
    paragraphs = [paragraph(ln) for ln in make_lines("hi", "yo")]
    pairs = asyncio.run(orchestrator(provider).translate_paragraph_texts(paragraphs))
    assert pairs == [("hi", "HI"), ("yo", "YO")]


def test_translate_paragraph_texts_rejects_missing_keys():
    provider = ScriptedCompletion('{"0": "HI"}')
    paragraphs = [paragraph(ln) for ln in make_lines("hi", "yo")]
    with pytest.raises(ExhaustedRetries):
        asyncio.run(orchestrator(provider).translate_paragraph_texts(paragraphs))


def test_to_markdown_extracts_block():
    provider = ScriptedCompletion("no fence", "```markdown\n| a | b |\n```")
    result = asyncio.run(orchestrator(provider).to_markdown("a  b\n", b"png"))
    assert result == "| a | b |"
    assert provider.calls[-1][3] == (b"png",)
