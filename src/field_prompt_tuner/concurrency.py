"""
Bounded Concurrency

Generic worker pool that runs a function over a list of items with a hard cap
on simultaneously running calls, returning results in input order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def run_bounded(
    items: Sequence[T],
    limit: int,
    fn: Callable[[T], R],
    on_error: Callable[[T, Exception], R] | None = None,
) -> list[R]:
    """
    Run fn over items with at most `limit` calls in flight.

    A failure in one call never cancels its siblings: every item runs to
    completion before this function returns.

    Args:
        items: Items to process
        limit: Maximum number of concurrent calls (must be >= 1)
        fn: Function applied to each item
        on_error: Produces a substitute result for a failed item. When omitted,
            the failure of the lowest-index item is re-raised after all items finish.

    Returns:
        list: Results with the same length and index correspondence as items

    Raises:
        ValueError: If limit is less than 1
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1 (got {limit}).")
    if not items:
        return []

    results: list = [None] * len(items)
    errors: dict[int, Exception] = {}

    with ThreadPoolExecutor(max_workers=min(limit, len(items))) as executor:
        futures = {
            executor.submit(fn, item): index
            for index, item in enumerate(items)
        }

        for future in as_completed(futures):
            index = futures[future]
            try:
                results[index] = future.result()
            except Exception as e:
                errors[index] = e

    for index in sorted(errors):
        if on_error is None:
            raise errors[index]
        logger.debug("Item %d failed, substituting fallback: %s", index, errors[index])
        results[index] = on_error(items[index], errors[index])

    return results
