"""
Surrogate Key Generation

Dense ordinal keys (1..N) assigned over a materialized, sorted dimension.
Keys are scoped to one build; nothing is carried between runs.
"""

from typing import List, Sequence

import polars as pl


def assign_surrogate_keys(
    df: pl.DataFrame,
    key_column: str,
    sort_by: Sequence[str],
) -> pl.DataFrame:
    """
    Number the rows of ``df`` from 1 in ``sort_by`` order.

    Remaining columns act as tie-breakers, so the same set of rows always
    receives the same keys regardless of the order it arrived in. The key
    column is placed first.
    """
    sort_columns: List[str] = list(sort_by) + [c for c in df.columns if c not in sort_by]
    return (
        df.sort(sort_columns, maintain_order=True)
        .with_row_index(key_column, offset=1)
        .with_columns(pl.col(key_column).cast(pl.Int64))
    )


def is_dense(keys: pl.Series) -> bool:
    """True when the keys are exactly {1, ..., N} with no gaps or repeats"""
    n = keys.len()
    if n == 0:
        return True
    if keys.null_count() or keys.n_unique() != n:
        return False
    return keys.min() == 1 and keys.max() == n
