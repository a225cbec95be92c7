"""Detection of translated indirect branch sequences and their fall-through rate."""

from __future__ import annotations

from dataclasses import dataclass

# (mask, value) pairs for the last five instruction words of a block.
_CALL_PATTERN = (
    (0xFFFFFC00, 0x927C2000),
    (0xFF200000, 0x8B000000),
    (0xFFFF8000, 0xA9400000),
    (0xFFE0FC1F, 0xEB00001F),
    (0xFF00001F, 0x54000000),
)
_JUMP_PATTERN = (
    (0xFFFFFC00, 0x927E2000),
    (0xFF200000, 0x8B000000),
    (0xFFFF8000, 0xA9400000),
    (0xFFE0FC1F, 0xEB00001F),
    (0xFF00001F, 0x54000001),
)


@dataclass(frozen=True)
class BlockInfo:
    """A translated block: first and last pc and its indirect kind (0 none, 1 call, 2 jump)."""

    head_pc: int
    tail_pc: int = 0
    indirect_type: int = 0


def _matches(codes, pattern) -> bool:
    return all((code & mask) == value for code, (mask, value) in zip(codes, pattern))


def classify_block(pcs, codes) -> BlockInfo:
    """Build the BlockInfo for a block from its instruction addresses and words."""
    pcs = list(pcs)
    codes = list(codes)
    if not pcs:
        raise ValueError("a block needs at least one instruction")
    if len(pcs) != len(codes):
        raise ValueError("pcs and codes must have the same length")
    if len(codes) < 5:
        return BlockInfo(head_pc=pcs[0])
    tail = codes[-5:]
    kind = 0
    if _matches(tail, _CALL_PATTERN):
        kind = 1
    if _matches(tail, _JUMP_PATTERN):
        kind = 2
    return BlockInfo(head_pc=pcs[0], tail_pc=pcs[-1], indirect_type=kind)


class IndirectBranchStats:
    """Counts indirect call and jump sequences and how often they fall through."""

    def __init__(self) -> None:
        self.call_count = 0
        self.call_miss = 0
        self.jump_count = 0
        self.jump_miss = 0
        self._pending = 0

    def execute(self, block: BlockInfo) -> None:
        """Account for one execution of ``block``."""
        if self._pending:
            kind = self._pending & 0x3
            last_pc = self._pending & ~0x3
            fell_through = last_pc + 4 == block.head_pc
            if kind == 1:
                self.call_miss += int(fell_through)
            elif kind == 2:
                self.jump_miss += int(not fell_through)
        if block.indirect_type:
            self._pending = block.tail_pc | block.indirect_type
            if block.indirect_type == 1:
                self.call_count += 1
            else:
                self.jump_count += 1
        else:
            self._pending = 0

    def report(self) -> str:
        """Return ``call_count,call_miss,jump_count,jump_miss`` as one line."""
        return f"{self.call_count},{self.call_miss},{self.jump_count},{self.jump_miss}\n"