"""Rank-preserving merge of vector hits with relational rows."""

from __future__ import annotations

from typing import Callable, Iterable, Sequence, TypeVar

T = TypeVar("T")


def ranked_ids(ids: Iterable[str]) -> list[str]:
    """Drop repeated ids, keeping the first (best-ranked) occurrence."""
    return list(dict.fromkeys(ids))


def merge_in_rank_order(
    ranked: Sequence[str],
    rows: Iterable[T],
    key: Callable[[T], str],
    limit: int | None = None,
) -> list[T]:
    """Order ``rows`` by their position in ``ranked``.

    The order of ``rows`` is ignored. Ids without a matching row are dropped
    (the record was deleted after it was indexed), repeated ids appear once,
    and at most ``limit`` rows are returned.
    """
    by_id = {key(row): row for row in rows}
    merged = [by_id[record_id] for record_id in ranked_ids(ranked) if record_id in by_id]
    return merged if limit is None else merged[:limit]
