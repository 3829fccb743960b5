"""Batch Fan-Out Aggregator — one backend call per batch item, merged in input order.

Usage:
    items = [BatchItem(i, text) for i, text in enumerate(texts)]
    merged = await aggregate(items, call_backend, concurrency_limit=3, model="text-embedding-ada-002")
    return merged.to_dict()

Admission is a sliding window: at most ``concurrency_limit`` calls are in
flight, and a new one starts as soon as any running call finishes. Calls
complete in whatever order the network dictates; each one parks its result
in the slot of its input index, and a single merge pass afterwards walks the
slots in order. The merge is the only writer of the MergedResult.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from relay.gateway.types import BatchItem, MergedResult, SubResult, Usage

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3

ItemCall = Callable[[BatchItem], Awaitable[SubResult]]


async def aggregate(
    items: Sequence[BatchItem],
    call: ItemCall,
    *,
    concurrency_limit: int = DEFAULT_CONCURRENCY,
    model: str | None = None,
) -> MergedResult:
    """Run ``call`` for every item with bounded concurrency and merge the results.

    If any call raises, the calls still pending are cancelled and the
    exception propagates; no partial result is returned.
    """
    if concurrency_limit < 1:
        raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")

    if not items:
        return MergedResult(model=model)

    semaphore = asyncio.Semaphore(concurrency_limit)
    slots: list[SubResult | None] = [None] * len(items)

    async def _run(position: int, item: BatchItem) -> None:
        async with semaphore:
            slots[position] = await call(item)

    tasks = [asyncio.create_task(_run(pos, item)) for pos, item in enumerate(items)]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.warning("Aggregation of %d items aborted", len(items))
        raise

    merged = merge_results(slots, model=model)
    logger.info(
        "Aggregated %d items into %d records (prompt_tokens=%d)",
        len(items),
        len(merged.data),
        merged.usage.prompt_tokens,
    )
    return merged


def merge_results(results: Sequence[SubResult | None], model: str | None = None) -> MergedResult:
    """Concatenate per-item records in order, re-index them 0..K-1 and sum usage."""
    merged = MergedResult(model=model)
    usage = Usage()

    for result in results:
        if result is None:
            continue
        for record in result.data:
            merged.data.append({**record, "index": len(merged.data)})
        usage = usage + result.usage

    merged.usage = usage
    return merged
