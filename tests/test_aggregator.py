"""Tests for the Batch Fan-Out Aggregator."""

from __future__ import annotations

import asyncio
import random

import pytest

from relay.gateway.aggregator import aggregate, merge_results
from relay.gateway.types import BatchItem, MergedResult, SubResult, Usage


def items_of(*values) -> list[BatchItem]:
    return [BatchItem(index=i, value=v) for i, v in enumerate(values)]


def embedding_result(tag: str, *, records: int = 1, prompt: int = 1, total: int = 1) -> SubResult:
    return SubResult(
        data=[{"object": "embedding", "embedding": [0.0], "tag": f"{tag}{n}", "index": 0} for n in range(records)],
        usage=Usage(prompt_tokens=prompt, total_tokens=total),
    )


class InFlightCounter:
    """Wraps a call and tracks how many invocations run at once."""

    def __init__(self, delay: float = 0.01):
        self.delay = delay
        self.current = 0
        self.peak = 0
        self.started: list[int] = []

    async def __call__(self, item: BatchItem) -> SubResult:
        self.current += 1
        self.peak = max(self.peak, self.current)
        self.started.append(item.index)
        try:
            await asyncio.sleep(self.delay)
            return embedding_result(str(item.value))
        finally:
            self.current -= 1


# ==========================================================================
# Test: Types
# ==========================================================================


class TestAggregatorTypes:
    def test_usage_addition(self):
        assert Usage(1, 2) + Usage(3, 4) == Usage(4, 6)

    def test_merged_result_to_dict(self):
        merged = MergedResult(data=[{"embedding": [1.0], "index": 0}], model="ada", usage=Usage(5, 5))
        assert merged.to_dict() == {
            "object": "list",
            "data": [{"embedding": [1.0], "index": 0}],
            "model": "ada",
            "usage": {"prompt_tokens": 5, "total_tokens": 5},
        }

    def test_sub_result_from_payload(self):
        result = SubResult.from_payload(
            {"data": [{"embedding": [0.5], "index": 0}], "usage": {"prompt_tokens": 3, "total_tokens": 4}}
        )
        assert result.data == [{"embedding": [0.5], "index": 0}]
        assert result.usage == Usage(3, 4)

    def test_sub_result_missing_usage_counts_zero(self):
        result = SubResult.from_payload({"data": []})
        assert result.usage == Usage(0, 0)

    def test_sub_result_rejects_bad_shape(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            SubResult.from_payload({"error": {"message": "nope"}})


# ==========================================================================
# Test: merge_results
# ==========================================================================


class TestMergeResults:
    def test_reindexes_sequentially(self):
        merged = merge_results([embedding_result("a", records=2), embedding_result("b", records=3)])
        assert [d["index"] for d in merged.data] == [0, 1, 2, 3, 4]
        assert [d["tag"] for d in merged.data] == ["a0", "a1", "b0", "b1", "b2"]

    def test_item_with_no_records(self):
        merged = merge_results([embedding_result("a", records=0, prompt=2, total=2), embedding_result("b")])
        assert [d["tag"] for d in merged.data] == ["b0"]
        assert merged.data[0]["index"] == 0
        assert merged.usage == Usage(3, 3)

    def test_does_not_mutate_sub_results(self):
        sub = embedding_result("a")
        merge_results([embedding_result("x"), sub])
        assert sub.data[0]["index"] == 0


# ==========================================================================
# Test: aggregate()
# ==========================================================================


class TestAggregate:
    @pytest.mark.asyncio
    async def test_two_items_scenario(self):
        async def call(item: BatchItem) -> SubResult:
            return SubResult.from_payload(
                {"data": [{"embedding": [0.1, 0.2]}], "usage": {"prompt_tokens": 1, "total_tokens": 1}}
            )

        merged = await aggregate(items_of("a", "b"), call, concurrency_limit=3, model="text-embedding-ada-002")
        body = merged.to_dict()

        assert body["object"] == "list"
        assert body["model"] == "text-embedding-ada-002"
        assert [d["index"] for d in body["data"]] == [0, 1]
        assert body["usage"] == {"prompt_tokens": 2, "total_tokens": 2}

    @pytest.mark.asyncio
    async def test_order_preserved_when_completion_reversed(self):
        delays = {"A": 0.06, "B": 0.03, "C": 0.0}
        finished: list[str] = []

        async def call(item: BatchItem) -> SubResult:
            await asyncio.sleep(delays[item.value])
            finished.append(item.value)
            return embedding_result(item.value, records=2)

        merged = await aggregate(items_of("A", "B", "C"), call, concurrency_limit=3)

        assert finished == ["C", "B", "A"]
        assert [d["tag"] for d in merged.data] == ["A0", "A1", "B0", "B1", "C0", "C1"]
        assert [d["index"] for d in merged.data] == list(range(6))

    @pytest.mark.asyncio
    async def test_usage_additive_under_random_completion(self):
        rng = random.Random(1234)
        counters = [(rng.randint(1, 50), rng.randint(50, 100)) for _ in range(12)]

        async def call(item: BatchItem) -> SubResult:
            await asyncio.sleep(rng.random() * 0.02)
            prompt, total = counters[item.index]
            return embedding_result(str(item.index), prompt=prompt, total=total)

        merged = await aggregate(items_of(*range(12)), call, concurrency_limit=4)

        assert merged.usage.prompt_tokens == sum(p for p, _ in counters)
        assert merged.usage.total_tokens == sum(t for _, t in counters)
        assert [d["tag"] for d in merged.data] == [f"{i}0" for i in range(12)]

    @pytest.mark.asyncio
    async def test_concurrency_bound(self):
        counter = InFlightCounter()
        merged = await aggregate(items_of(*range(10)), counter, concurrency_limit=3)

        assert counter.peak == 3
        assert len(merged.data) == 10

    @pytest.mark.asyncio
    async def test_sliding_window_admission(self):
        """A slow item must not hold back the rest of its 'batch'."""
        started_at: dict[int, float] = {}
        loop = asyncio.get_running_loop()

        async def call(item: BatchItem) -> SubResult:
            started_at[item.index] = loop.time()
            await asyncio.sleep(0.2 if item.index == 0 else 0.01)
            return embedding_result(str(item.index))

        await aggregate(items_of(*range(6)), call, concurrency_limit=2)

        # Items 2..5 all start while item 0 is still running
        assert all(started_at[i] - started_at[0] < 0.15 for i in range(2, 6))

    @pytest.mark.asyncio
    async def test_single_failure_fails_aggregate(self):
        cancelled: list[int] = []

        async def call(item: BatchItem) -> SubResult:
            if item.index == 1:
                raise RuntimeError("backend exploded")
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                cancelled.append(item.index)
                raise
            return embedding_result(str(item.index))

        with pytest.raises(RuntimeError, match="backend exploded"):
            await aggregate(items_of("a", "b", "c", "d"), call, concurrency_limit=2)

        # The running sibling was cancelled rather than left dangling
        assert 0 in cancelled

    @pytest.mark.asyncio
    async def test_empty_items(self):
        called = False

        async def call(item: BatchItem) -> SubResult:
            nonlocal called
            called = True
            return embedding_result("x")

        merged = await aggregate([], call, concurrency_limit=3, model="ada")
        assert merged.to_dict() == {
            "object": "list",
            "data": [],
            "model": "ada",
            "usage": {"prompt_tokens": 0, "total_tokens": 0},
        }
        assert called is False

    @pytest.mark.asyncio
    async def test_invalid_concurrency_limit(self):
        async def call(item: BatchItem) -> SubResult:
            return embedding_result("x")

        with pytest.raises(ValueError):
            await aggregate(items_of("a"), call, concurrency_limit=0)
