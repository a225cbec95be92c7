"""Binary layout of ChampSim instruction trace records."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from pathlib import Path

NUM_INSTR_DESTINATIONS = 2
NUM_INSTR_SOURCES = 4

_U8 = 0xFF
_U32 = 0xFFFFFFFF
_U64 = (1 << 64) - 1

# ip, is_branch, branch_taken, destination and source registers, then memory.
_PLAIN = struct.Struct(
    f"<QBB{NUM_INSTR_DESTINATIONS}B{NUM_INSTR_SOURCES}B"
    f"{NUM_INSTR_DESTINATIONS}Q{NUM_INSTR_SOURCES}Q"
)
# The same followed by the raw 32-bit instruction word, padded to 8 bytes.
_WITH_INST = struct.Struct(
    f"<QBB{NUM_INSTR_DESTINATIONS}B{NUM_INSTR_SOURCES}B"
    f"{NUM_INSTR_DESTINATIONS}Q{NUM_INSTR_SOURCES}QI4x"
)


def _layout(with_inst: bool) -> struct.Struct:
    return _WITH_INST if with_inst else _PLAIN


def record_size(with_inst: bool = False) -> int:
    """Return the size in bytes of one record."""
    return _layout(with_inst).size


def _fixed_list(values, length: int, name: str) -> list[int]:
    values = list(values)
    if len(values) > length:
        raise ValueError(f"{name} holds at most {length} entries, got {len(values)}")
    return values + [0] * (length - len(values))


@dataclass
class TraceRecord:
    """One executed instruction as stored in a trace.

    In an instruction template, ``branch_taken`` holds the instruction size
    until the next executed pc resolves it to 0 or 1.
    """

    ip: int = 0
    is_branch: int = 0
    branch_taken: int = 0
    destination_registers: list[int] = field(default_factory=list)
    source_registers: list[int] = field(default_factory=list)
    destination_memory: list[int] = field(default_factory=list)
    source_memory: list[int] = field(default_factory=list)
    inst: int = 0

    def __post_init__(self) -> None:
        self.destination_registers = _fixed_list(
            self.destination_registers, NUM_INSTR_DESTINATIONS, "destination_registers"
        )
        self.source_registers = _fixed_list(
            self.source_registers, NUM_INSTR_SOURCES, "source_registers"
        )
        self.destination_memory = _fixed_list(
            self.destination_memory, NUM_INSTR_DESTINATIONS, "destination_memory"
        )
        self.source_memory = _fixed_list(self.source_memory, NUM_INSTR_SOURCES, "source_memory")

    def add_memory(self, vaddr: int, is_store: bool) -> bool:
        """Store ``vaddr`` in the first free store or load slot; return False when full."""
        slots = self.destination_memory if is_store else self.source_memory
        for i, value in enumerate(slots):
            if value == 0:
                slots[i] = vaddr & _U64
                return True
        return False

    def pack(self, with_inst: bool = False) -> bytes:
        """Return the record's bytes."""
        values = [
            self.ip & _U64,
            self.is_branch & _U8,
            self.branch_taken & _U8,
            *(r & _U8 for r in self.destination_registers),
            *(r & _U8 for r in self.source_registers),
            *(m & _U64 for m in self.destination_memory),
            *(m & _U64 for m in self.source_memory),
        ]
        if with_inst:
            values.append(self.inst & _U32)
        return _layout(with_inst).pack(*values)

    @classmethod
    def unpack(cls, data: bytes, with_inst: bool = False) -> TraceRecord:
        """Build a record from exactly one record's bytes."""
        layout = _layout(with_inst)
        if len(data) != layout.size:
            raise ValueError(f"a record is {layout.size} bytes, got {len(data)}")
        return cls._from_values(layout.unpack(data), with_inst)

    @classmethod
    def _from_values(cls, values, with_inst: bool) -> TraceRecord:
        values = list(values)
        ip, is_branch, taken = values[:3]
        pos = 3
        dest_regs = values[pos:pos + NUM_INSTR_DESTINATIONS]
        pos += NUM_INSTR_DESTINATIONS
        src_regs = values[pos:pos + NUM_INSTR_SOURCES]
        pos += NUM_INSTR_SOURCES
        dest_mem = values[pos:pos + NUM_INSTR_DESTINATIONS]
        pos += NUM_INSTR_DESTINATIONS
        src_mem = values[pos:pos + NUM_INSTR_SOURCES]
        pos += NUM_INSTR_SOURCES
        inst = values[pos] if with_inst else 0
        return cls(ip, is_branch, taken, dest_regs, src_regs, dest_mem, src_mem, inst)


def read_trace(path, with_inst: bool = False) -> list[TraceRecord]:
    """Read every record of a trace file."""
    data = Path(path).read_bytes()
    layout = _layout(with_inst)
    if len(data) % layout.size:
        raise ValueError(
            f"trace size {len(data)} is not a multiple of the record size {layout.size}"
        )
    return [TraceRecord._from_values(v, with_inst) for v in layout.iter_unpack(data)]