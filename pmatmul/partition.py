# partition.py - row blocks owned by each rank

from math import ceil


def _check(size, rows, rank=None):
    if size < 1:
        raise ValueError(f"size must be at least 1, got {size}")
    if rows < 0:
        raise ValueError(f"rows must be non-negative, got {rows}")
    if rank is not None and not (0 <= rank < size):
        raise ValueError(f"rank {rank} is outside [0, {size})")


def chunk_size(size: int, rows: int) -> int:
    _check(size, rows)
    return ceil(rows / size)


def row_range(rank: int, size: int, rows: int) -> tuple[int, int]:
    """
    Half-open row range [start, end) owned by `rank`.

    Every rank but possibly the last non-empty one gets exactly
    ceil(rows / size) rows. Ranks past the end of the matrix get an empty
    range (start == end) instead of an error.
    """
    _check(size, rows, rank)
    chunk = ceil(rows / size)

    # Clamp start as well so empty ranges stay inside [0, rows]
    start = min(rank * chunk, rows)
    end = min((rank + 1) * chunk, rows)
    return start, end


def row_ranges(size: int, rows: int) -> list[tuple[int, int]]:
    return [row_range(rank, size, rows) for rank in range(size)]


def block_offset(start: int, ncols: int) -> int:
    # Flat offset of row `start` in a row-major buffer
    return start * ncols


def block_count(start: int, end: int, ncols: int) -> int:
    return (end - start) * ncols
