"""DataFrame adapters for :func:`~streaming_logit.fit_logistic_regression`.

The partitioning code slices NumPy arrays pulled out of a pandas
frame.  Inputs that arrive as a pandas ``Series`` or as Polars objects
are normalised to a one-or-more-column ``pandas.DataFrame`` here, at
the boundary, so nothing downstream has to know about them.

Polars is optional (``pip install streaming-logit[polars]``).  Without
it, only pandas inputs are accepted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeAlias

import pandas as pd

if TYPE_CHECKING:
    import polars as pl

    DataFrameLike: TypeAlias = (
        pd.DataFrame | pd.Series | pl.DataFrame | pl.LazyFrame | pl.Series
    )
else:
    DataFrameLike: TypeAlias = pd.DataFrame | pd.Series

# Polars is detected once, at import time.
try:
    import polars as pl

    _HAS_POLARS = True
except ImportError:
    _HAS_POLARS = False


def _from_polars(obj: object) -> pd.DataFrame | None:
    """Convert a Polars frame, lazy frame or series; ``None`` otherwise."""
    if not _HAS_POLARS:
        return None
    if isinstance(obj, pl.LazyFrame):
        obj = obj.collect()
    if isinstance(obj, pl.DataFrame):
        return obj.to_pandas()
    if isinstance(obj, pl.Series):
        return obj.to_pandas().to_frame()
    return None


def _ensure_pandas_df(obj: DataFrameLike, *, name: str = "input") -> pd.DataFrame:
    """Normalise *obj* to a ``pandas.DataFrame``.

    A pandas frame is returned unchanged (same object).  A pandas or
    Polars series becomes a one-column frame; a Polars lazy frame is
    collected first.

    Args:
        obj: Design matrix or response.
        name: Argument name quoted in the error message.

    Raises:
        TypeError: For anything that is not one of the types above,
            including bare NumPy arrays.
    """
    if isinstance(obj, pd.DataFrame):
        return obj
    if isinstance(obj, pd.Series):
        return obj.to_frame()

    converted = _from_polars(obj)
    if converted is not None:
        return converted

    accepted = "a pandas DataFrame or Series"
    if _HAS_POLARS:
        accepted += " or Polars DataFrame/LazyFrame/Series"
    raise TypeError(f"'{name}' must be {accepted}, got {type(obj).__name__}.")
