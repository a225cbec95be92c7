"""ChampSim tracing of the SimPoint intervals chosen for a program."""

from __future__ import annotations

import copy
import os
import re
import sys

from uarchsim.trace_format import TraceRecord, record_size

MAX_SIMPOINTS = 1024

_INT = re.compile(r"\s*([+-]?\d+)")
_FLOAT = re.compile(
    r"\s*[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)


def parse_simpoints(text: str) -> list[int]:
    """Read ``<interval> <weight>`` pairs and return the intervals, largest first.

    Reading stops at the first value that is not an integer. A file with
    :data:`MAX_SIMPOINTS` or more entries is rejected.
    """
    points: list[int] = []
    pos = 0
    while True:
        match = _INT.match(text, pos)
        if match is None:
            break
        points.append(int(match.group(1)))
        pos = match.end()
        if len(points) >= MAX_SIMPOINTS:
            raise ValueError("simpoints too large")
        skipped = _FLOAT.match(text, pos)
        if skipped is None:
            break
        pos = skipped.end()
    return sorted(points, reverse=True)


def apply_warmup(points) -> list[int]:
    """Shift each interval one back so the interval before it serves as warm-up.

    ``points`` is expected largest first. A trailing interval 0 becomes 1
    (dropped if that duplicates the interval before it) before the shift.
    Raises ValueError when two neighbouring entries overlap.
    """
    points = list(points)
    if not points:
        return points
    if points[-1] == 0:
        points[-1] = 1
        if len(points) >= 2 and points[-1] == 1 and points[-2] == 1:
            points.pop()
    points = [p - 1 for p in points]
    for current, following in zip(points, points[1:]):
        if current + 1 == following:
            raise ValueError("simpoints overlap, not supported currently")
    return points


class SimpointTracer:
    """Records ``save_num`` instructions starting at each selected interval.

    ``points`` are interval numbers, largest first; they are consumed from
    the end. A trace starts when the executed instruction count equals
    ``interval * point`` and is written to ``<filename>_<count>``.
    ``save_num`` defaults to two intervals (warm-up plus the interval).
    """

    def __init__(
        self,
        points,
        interval: int = 10000,
        filename: str = "champsim.trace",
        save_num: int | None = None,
        verbose: bool = False,
    ) -> None:
        if save_num is None:
            save_num = interval * 2
        if save_num <= 0:
            raise ValueError("number of saved instructions must be positive")
        self.points = list(points)
        self.interval = interval
        self.filename = filename
        self.save_num = save_num
        self.verbose = verbose
        self.record_size = record_size(False)
        self.real_insn_count = 0
        self.saving = False
        self.saved = 0
        self.paths: list[str] = []
        self.closed = False
        self._file = None
        self._current: TraceRecord | None = None

    def __enter__(self) -> SimpointTracer:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _write(self, position: int, record: TraceRecord) -> None:
        self._file.seek(position * self.record_size)
        self._file.write(record.pack())

    def _open_trace(self) -> None:
        path = f"{self.filename}_{self.real_insn_count}"
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o600)
        self._file = os.fdopen(fd, "r+b")
        self._file.truncate(self.save_num * self.record_size)
        self.paths.append(path)

    def execute(self, template: TraceRecord) -> None:
        """Account for one executed instruction described by ``template``."""
        self.real_insn_count += 1
        if (
            not self.saving
            and self.points
            and self.real_insn_count == self.interval * self.points[-1]
        ):
            print(f"save begin {self.points[-1]}", file=sys.stderr)
            self.points.pop()
            self.saving = True
            self.saved = 0

        if not self.saving:
            return

        if self.saved and self._current is not None:
            last = self._current
            last.branch_taken = int(last.ip + last.branch_taken != template.ip)
            self._write(self.saved - 1, last)
        else:
            self._open_trace()

        self._current = copy.deepcopy(template)
        if self.verbose:
            print(f"cpu:0, pc:{template.ip:x}, is_branch:{template.is_branch}")

        self.saved += 1
        if self.saved == self.save_num:
            self._write(self.saved - 1, self._current)
            self._current = None
            self._file.close()
            self._file = None
            print("trace fini", file=sys.stderr)
            self.saving = False

    def memory_access(self, vaddr: int, is_store: bool) -> None:
        """Attach a memory access to the instruction being recorded."""
        if not self.saving or self._current is None:
            return
        self._current.add_memory(vaddr, is_store)
        if self.verbose:
            print(f"cpu:0, mem_addr:{vaddr:x}, is_st:{int(bool(is_store))}")

    def close(self) -> None:
        """Finish an unfinished trace, cutting it to the instructions saved so far."""
        if self.closed:
            return
        if self.saving and self._file is not None and self.saved < self.save_num:
            if self._current is not None:
                self._write(self.saved - 1, self._current)
            kept = min(self.saved, self.save_num)
            self._file.truncate(kept * self.record_size)
            self._file.close()
            self._file = None
            print(f"truncate to {kept} * {self.record_size}", file=sys.stderr)
        self._current = None
        self.saving = False
        print("plugin fini, trace fini", file=sys.stderr)
        self.closed = True