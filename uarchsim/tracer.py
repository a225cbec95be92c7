"""Writes a ChampSim trace of a window of executed instructions."""

from __future__ import annotations

import copy
import os
import re
import sys
from dataclasses import dataclass

from uarchsim.trace_format import TraceRecord, record_size

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _atoll(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


@dataclass
class TraceConfig:
    """Settings of a trace run."""

    trace_count: int = 10000
    skip_count: int = 10000
    filename: str = "champsim.trace"
    verbose: bool = False
    early_exit: bool = False


def config_from_env(environ=None) -> TraceConfig:
    """Read VERBOSE, EARLY_EXIT, TRACE_COUNT, TRACE_SKIP_COUNT and TRACE_FILENAME."""
    env = os.environ if environ is None else environ
    config = TraceConfig()
    if "VERBOSE" in env:
        config.verbose = True
    if "EARLY_EXIT" in env:
        config.early_exit = True
    if "TRACE_COUNT" in env:
        config.trace_count = _atoll(env["TRACE_COUNT"])
    if "TRACE_SKIP_COUNT" in env:
        config.skip_count = _atoll(env["TRACE_SKIP_COUNT"])
    if "TRACE_FILENAME" in env:
        config.filename = env["TRACE_FILENAME"]
    return config


class ChampsimTracer:
    """Skips ``skip_count`` instructions, then records up to ``trace_count`` of them.

    Each instruction is described by a template record whose
    ``branch_taken`` holds the instruction size; the next executed pc
    decides whether it was taken.
    """

    def __init__(self, config: TraceConfig | None = None) -> None:
        self.config = config or TraceConfig()
        if self.config.trace_count < 0:
            raise ValueError("trace count must not be negative")
        self.record_size = record_size(False)
        self.real_insn_count = 0
        self.index = -1
        self._current: TraceRecord | None = None
        fd = os.open(self.config.filename, os.O_RDWR | os.O_CREAT, 0o600)
        self._file = os.fdopen(fd, "r+b")
        self._file.truncate(self.config.trace_count * self.record_size)
        self.closed = False

    def __enter__(self) -> ChampsimTracer:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _write(self, position: int, record: TraceRecord) -> None:
        self._file.seek(position * self.record_size)
        self._file.write(record.pack())

    def execute(self, template: TraceRecord) -> None:
        """Account for one executed instruction described by ``template``.

        Raises SystemExit(0) when the trace is full and early exit is set.
        """
        count = self.config.trace_count
        self.real_insn_count += 1
        if self.real_insn_count <= self.config.skip_count:
            return
        if self.real_insn_count == self.config.skip_count + 1:
            print("trace start", file=sys.stderr)
        if 0 <= self.index < count and self._current is not None:
            last = self._current
            last.branch_taken = int(last.ip + last.branch_taken != template.ip)
            self._write(self.index, last)
        self.index += 1
        if self.index == count:
            self._current = None
            self._file.close()
            print("trace fini", file=sys.stderr)
            if self.config.early_exit:
                raise SystemExit(0)
        elif self.index < count:
            self._current = copy.deepcopy(template)
            if self.config.verbose:
                print(f"cpu:0, pc:{template.ip:x}, is_branch:{template.is_branch}")

    def memory_access(self, vaddr: int, is_store: bool) -> None:
        """Attach a memory access to the instruction being recorded."""
        if self.real_insn_count <= self.config.skip_count:
            return
        if self.index < self.config.trace_count and self._current is not None:
            self._current.add_memory(vaddr, is_store)
            if self.config.verbose:
                print(f"cpu:0, mem_addr:{vaddr:x}, is_st:{int(bool(is_store))}")

    def close(self) -> None:
        """Finish the trace, dropping the last unresolved record."""
        if self.closed:
            return
        count = self.config.trace_count
        if self.index < count:
            if self._current is not None and self.index >= 0:
                self._write(self.index, self._current)
            kept = count if self.index < 0 else min(self.index, count)
            self._file.truncate(kept * self.record_size)
            self._file.close()
        print("plugin fini, trace fini", file=sys.stderr)
        self.closed = True