"""Fixed-size batching of upload records."""

from typing import Sequence, TypeVar

from ..config import DEFAULT_BATCH_SIZE

__all__ = ["chunk", "batch_count"]

T = TypeVar("T")


def chunk(records: Sequence[T], size: int = DEFAULT_BATCH_SIZE) -> list[list[T]]:
    """Split records into consecutive groups of ``size``, preserving order.

    Every group has exactly ``size`` items except possibly the last.
    """
    if isinstance(size, bool) or not isinstance(size, int) or size < 1:
        raise ValueError(f"Batch size must be a positive integer, got {size!r}")
    return [list(records[i : i + size]) for i in range(0, len(records), size)]


def batch_count(total: int, size: int = DEFAULT_BATCH_SIZE) -> int:
    """Number of batches ``chunk`` produces for ``total`` records."""
    if size < 1:
        raise ValueError(f"Batch size must be a positive integer, got {size!r}")
    return (total + size - 1) // size
