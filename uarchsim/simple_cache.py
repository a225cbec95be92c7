"""A small LRU cache with a same-line fast path, used for i-cache and d-cache counts."""

from __future__ import annotations

import math

_U64 = (1 << 64) - 1
_OFFSET_BITS = 6


def _is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


class SimpleCache:
    """Set-associative LRU cache with 64-byte lines.

    An access to the same line as the previous access counts as a hit
    without touching the sets.
    """

    def __init__(self, name: str = "cache", num_sets: int = 64, num_ways: int = 8) -> None:
        if not _is_power_of_two(num_sets):
            raise ValueError("num_sets must be a power of two")
        if not _is_power_of_two(num_ways):
            raise ValueError("num_ways must be a power of two")
        self.name = name
        self.num_sets = num_sets
        self.num_ways = num_ways
        self.offset_bits = _OFFSET_BITS
        self.set_index_bits = num_sets.bit_length() - 1
        self.tag_bits = 64 - self.set_index_bits - self.offset_bits
        # Each line is [tag, valid, last_used].
        self._sets = [[[0, False, 0] for _ in range(num_ways)] for _ in range(num_sets)]
        self.total_accesses = 0
        self.hits = 0
        self._last_line = 0

    def access(self, address: int) -> bool:
        """Access an address; return True on a hit."""
        address &= _U64
        self.total_accesses += 1
        line = address >> self.offset_bits
        if line == self._last_line:
            self.hits += 1
            return True
        self._last_line = line

        index = line & (self.num_sets - 1)
        tag = address >> (self.offset_bits + self.set_index_bits)
        lines = self._sets[index]

        for entry in lines:
            if entry[1] and entry[0] == tag:
                entry[2] = self.total_accesses
                self.hits += 1
                return True

        victim = 0
        oldest = None
        for way, entry in enumerate(lines):
            if not entry[1]:
                victim = way
                break
            if oldest is None or entry[2] < oldest:
                oldest = entry[2]
                victim = way

        lines[victim] = [tag, True, self.total_accesses]
        return False

    def statistics_line(self) -> str:
        """Return the one-line access summary."""
        ratio = self.hits * 100.0 / self.total_accesses if self.total_accesses else math.nan
        return (
            f"{self.name},num_sets,{self.num_sets},num_ways:{self.num_ways},"
            f"access:{self.total_accesses},hit:{self.hits},hit_ratio:{ratio:.6f}%\n"
        )


def fetch_points(instructions) -> list[int]:
    """Return the values fed to the instruction cache for one translated block.

    ``instructions`` is a sequence of ``(vaddr, size)`` pairs. The first
    value is the line number of the first instruction; after that, the last
    byte address of every instruction that ends on a new line is added.
    """
    points: list[int] = []
    last_line = None
    for position, (vaddr, size) in enumerate(instructions):
        if position == 0:
            last_line = vaddr >> _OFFSET_BITS
            points.append(last_line)
        end = vaddr + size - 1
        if end >> _OFFSET_BITS != last_line:
            points.append(end)
            last_line = end >> _OFFSET_BITS
    return points