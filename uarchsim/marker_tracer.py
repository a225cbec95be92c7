"""ChampSim tracing that starts a new trace file at every marker instruction."""

from __future__ import annotations

import copy
import os
import sys

from uarchsim.trace_format import TraceRecord, record_size
from uarchsim.tracer import TraceConfig

TRACE_MARKER = 0x2200

_U32 = 0xFFFFFFFF
_U64 = (1 << 64) - 1


def template_key(pc: int, code: int) -> int:
    """Return the key that identifies an instruction by its pc and its 32-bit word."""
    return (pc & _U64) | ((code & _U32) << 64)


class MarkerTracer:
    """Records up to ``trace_count`` instructions after each marker instruction.

    Every translated marker word opens ``<filename>_<n>`` for the n-th trace
    and switches recording on. Records carry the raw instruction word. The
    instruction count before a trace starts is kept but nothing is skipped.
    """

    def __init__(self, config: TraceConfig | None = None) -> None:
        self.config = config or TraceConfig()
        if self.config.trace_count < 0:
            raise ValueError("trace count must not be negative")
        self.record_size = record_size(True)
        self.real_insn_count = 0
        self.trace_id = 0
        self.index = -1
        self.switch_on = False
        self.paths: list[str] = []
        self.closed = False
        self._file = None
        self._current: TraceRecord | None = None

    def __enter__(self) -> MarkerTracer:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _write(self, position: int, record: TraceRecord) -> None:
        self._file.seek(position * self.record_size)
        self._file.write(record.pack(with_inst=True))

    def _start_file(self) -> None:
        if self._file is not None:
            # An unfinished trace keeps its full size; its last record stays unresolved.
            if self._current is not None and 0 <= self.index < self.config.trace_count:
                self._write(self.index, self._current)
            self._file.close()
        path = f"{self.config.filename}_{self.trace_id}"
        try:
            fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as exc:
            raise OSError(exc.errno, f"can not open {path}: {exc.strerror}") from exc
        self._file = os.fdopen(fd, "r+b")
        self._file.truncate(self.config.trace_count * self.record_size)
        self.paths.append(path)
        self.trace_id += 1
        self.switch_on = True
        self.index = -1
        self._current = None

    def translate(self, code: int) -> bool:
        """Look at a translated instruction word; start a new trace on a marker.

        Returns True when a new trace file was opened.
        """
        if code & _U32 != TRACE_MARKER:
            return False
        print("-----------CHAMPSIM TRACE BEGIN-----------", file=sys.stderr)
        self._start_file()
        return True

    def execute(self, template: TraceRecord) -> None:
        """Account for one executed instruction described by ``template``.

        Raises SystemExit(0) when a trace is full and early exit is set.
        """
        self.real_insn_count += 1
        if not self.switch_on:
            return
        count = self.config.trace_count
        if 0 <= self.index < count and self._current is not None:
            last = self._current
            last.branch_taken = int(last.ip + last.branch_taken != template.ip)
            self._write(self.index, last)
        self.index += 1
        if self.index == count:
            self._current = None
            self._file.close()
            self._file = None
            self.switch_on = False
            print("trace fini", file=sys.stderr)
            if self.config.early_exit:
                raise SystemExit(0)
        elif self.index < count:
            self._current = copy.deepcopy(template)
            if self.config.verbose:
                print(f"cpu:0, pc:{template.ip:x}, is_branch:{template.is_branch}")

    def memory_access(self, vaddr: int, is_store: bool) -> None:
        """Attach a memory access to the instruction being recorded."""
        if not self.switch_on:
            return
        if self.index < self.config.trace_count and self._current is not None:
            self._current.add_memory(vaddr, is_store)
            if self.config.verbose:
                print(f"cpu:0, mem_addr:{vaddr:x}, is_st:{int(bool(is_store))}")

    def close(self) -> None:
        """Finish the open trace, dropping its last unresolved record."""
        if self.closed:
            return
        count = self.config.trace_count
        if self._file is not None:
            if self._current is not None and 0 <= self.index < count:
                self._write(self.index, self._current)
            kept = count if self.index < 0 else min(self.index, count)
            self._file.truncate(kept * self.record_size)
            self._file.close()
            self._file = None
        self.switch_on = False
        print("plugin fini, trace fini", file=sys.stderr)
        self.closed = True