"""Basic block vector profiling for SimPoint, with optional ibar markers."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

IBAR_BEGIN = 0x38728040
IBAR_END = 0x38728041


@dataclass
class _BlockCount:
    id: int
    insn_count: int
    count: int = 0


class BBVProfiler:
    """Counts executions of translated blocks and writes one vector per interval.

    Output files ``bbv``, ``pc_info.txt``, ``log.txt`` and ``syscall.txt``
    are created in ``directory``.
    """

    def __init__(
        self,
        directory="result",
        interval_size: int = 100_000_000,
        target_name: str = "",
        check_ibar: bool = False,
    ) -> None:
        if interval_size <= 0:
            raise ValueError("interval size must be positive")
        self.directory = Path(directory)
        self.interval_size = interval_size
        self.target_name = target_name
        self.is_loongarch = target_name == "loongarch64"
        self.has_ibar_begin = not check_ibar
        self.has_ibar_end = False
        self.icount = 0
        self.inst_end = interval_size
        self.next_id = 1  # SimPoint ids start at one
        self.blocks: dict[int, _BlockCount] = {}
        self._exec_insns: dict[int, int] = {}
        self.closed = False

        self.directory.mkdir(parents=True, exist_ok=True)
        self._bbv = open(self.directory / "bbv", "w")
        self._pc_info = open(self.directory / "pc_info.txt", "w")
        self._log = open(self.directory / "log.txt", "w")
        self._syscall = open(self.directory / "syscall.txt", "w")
        self._log.write(f"target_arch:{target_name}\n")
        self._log.flush()

    def __enter__(self) -> BBVProfiler:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def translate_block(self, pc: int, codes) -> None:
        """Register a translated block at ``pc`` made of the instruction words ``codes``.

        Raises SystemExit(0) when a LoongArch ibar end marker is translated.
        """
        codes = list(codes)
        if pc not in self.blocks:
            block = _BlockCount(id=self.next_id, insn_count=len(codes))
            self.blocks[pc] = block
            self.next_id += 1
            self._pc_info.write(f"id:{block.id}, pc:{pc:x}, bb_insn_num:{block.insn_count}\n")
        if self.is_loongarch:
            for code in codes:
                code &= 0xFFFFFFFF
                if code == IBAR_BEGIN:
                    print("ibar begin", file=sys.stderr)
                    if not self.has_ibar_begin:
                        self.icount = 0
                    self.has_ibar_begin = True
                if code == IBAR_END:
                    print("ibar end", file=sys.stderr)
                    self.has_ibar_end = True
                    raise SystemExit(0)
        self._exec_insns[pc] = len(codes)

    def execute_block(self, pc: int) -> None:
        """Account for one execution of the block translated at ``pc``."""
        try:
            block = self.blocks[pc]
        except KeyError:
            raise KeyError(f"block at {pc:#x} was never translated") from None
        self.icount += self._exec_insns[pc]
        if not self.has_ibar_begin:
            return
        block.count += 1
        if self.icount >= self.inst_end:
            self.inst_end += self.interval_size
            self.dump_bbv()

    def syscall(self, num: int) -> None:
        """Log a system call entry."""
        self._syscall.write(f"icount:{self.icount}, syscall #{num}\n")

    def syscall_return(self, num: int, ret: int) -> None:
        """Log a system call return value."""
        self._syscall.write(f"icount:{self.icount}, syscall #{num} returned -> {ret}\n")

    def dump_bbv(self) -> None:
        """Write the current vector, ordered by block address, and reset the counts."""
        parts = ["T"]
        for pc in sorted(self.blocks):
            block = self.blocks[pc]
            if block.count > 0:
                parts.append(f":{block.id}:{block.count * block.insn_count} ")
                block.count = 0
        parts.append("\n")
        self._bbv.write("".join(parts))
        self._bbv.flush()

    def close(self) -> str:
        """Write the summary log, close all files and return the instruction count line."""
        if not self.closed:
            self._bbv.close()
            self._pc_info.close()
            self._log.write(f"icount:{self.icount}\n")
            self._log.write(f"tb_count:{self.next_id}\n")
            self._log.close()
            self._syscall.close()
            self.closed = True
        return f"{self.icount}\n"