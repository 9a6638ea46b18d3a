import json

import httpx
import pytest

from copydedup.judge import (
    LLM,
    CopyItemForJudge,
    JudgeError,
    JudgeParseError,
    JudgeQuotaError,
    ParseFailure,
    ParseOk,
    build_batch_result,
    extract_json_object,
    judge_batch,
    judge_with_llm,
    parse_judge_response,
    to_judge_items,
)
from copydedup.models import TextItem


class FakeLLM(LLM):
    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts = []

    async def complete(self, *, prompt: str, system_prompt: str) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _items(n, start=1):
    return [CopyItemForJudge(id=f"id{i}", index=i, text=f"copy {i}") for i in range(start, start + n)]


def test_parse_direct_and_embedded():
    assert parse_judge_response('{"uniqueItems": []}') == ParseOk({"uniqueItems": []})
    fenced = 'Here you go:\n```json\n{"a": {"b": "}"}}\n```'
    assert extract_json_object(fenced) == '{"a": {"b": "}"}}'
    assert parse_judge_response(fenced) == ParseOk({"a": {"b": "}"}})
    assert isinstance(parse_judge_response("no json here"), ParseFailure)
    assert isinstance(parse_judge_response("[1, 2]"), ParseFailure)


def test_batch_result_fills_unlisted_indices():
    parsed = {
        "uniqueItems": [{"index": 1, "reason": ""}],
        "duplicateGroups": [{"keepIndex": 2, "removeIndices": [3], "reason": "same prayer"}],
    }
    result = build_batch_result(parsed, _items(4))
    assert result.unique_indices == [1, 2, 4]
    assert result.unique_items[0].reason == "unique copy"
    assert result.unique_count == 3
    assert result.duplicate_count == 1
    assert result.total_processed == 4


def test_batch_result_keeps_explicit_unique_indices():
    parsed = {"uniqueIndices": [2], "uniqueItems": [{"index": 1}]}
    result = build_batch_result(parsed, _items(2))
    assert result.unique_indices == [2, 1]


def test_judge_item_aliases():
    items = to_judge_items([TextItem(id="a", text="Hope", chinese_text="希望")])
    dumped = items[0].model_dump(by_alias=True)
    assert dumped == {"id": "a", "index": 1, "text": "Hope", "chineseText": "希望"}


@pytest.mark.asyncio
async def test_single_batch_with_fenced_response():
    response = "```json\n" + json.dumps({"uniqueItems": [{"index": 1, "reason": "distinct"}], "duplicateGroups": []}) + "\n```"
    llm = FakeLLM([response])
    progress = []
    result = await judge_with_llm(_items(2), llm, on_progress=lambda c, t, s: progress.append((c, t)))
    assert result.unique_indices == [1, 2]
    assert progress == [(0, 1), (1, 1)]
    assert "[1] copy 1" in llm.prompts[0]


@pytest.mark.asyncio
async def test_quota_error_detected():
    with pytest.raises(JudgeQuotaError):
        await judge_batch(_items(1), FakeLLM(["Error 429: Resource has been exhausted (quota)"]))
    with pytest.raises(JudgeQuotaError):
        await judge_batch(_items(1), FakeLLM([RuntimeError("You exceeded your current quota")]))


@pytest.mark.asyncio
async def test_unparseable_response_raises():
    with pytest.raises(JudgeParseError):
        await judge_batch(_items(1), FakeLLM(["I cannot answer that"]))


@pytest.mark.asyncio
async def test_transport_error_wrapped():
    request = httpx.Request("POST", "https://example.invalid")
    with pytest.raises(JudgeError) as excinfo:
        await judge_batch(_items(1), FakeLLM([httpx.ConnectError("boom", request=request)]))
    assert not isinstance(excinfo.value, JudgeQuotaError)
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_failed_batch_marked_unique():
    first = json.dumps({"uniqueItems": [{"index": 1}], "duplicateGroups": [{"keepIndex": 1, "removeIndices": [2]}]})
    llm = FakeLLM([first, "garbage", json.dumps({"uniqueItems": []})])
    result = await judge_with_llm(_items(5), llm, batch_size=2, batch_delay_seconds=0)
    assert len(llm.prompts) == 3
    assert result.total_processed == 5
    assert result.duplicate_count == 1
    assert result.unique_count == 4
    assert result.unique_indices == [1, 3, 4, 5]
