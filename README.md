# uarchsim

Small, dependency-free tools that consume an instruction stream (from an
emulator hook or any other source) and turn it into cache statistics,
SimPoint basic-block vectors, indirect-branch counts or ChampSim-style
binary instruction traces.

## Modules

- `uarchsim.simple_cache` — `SimpleCache(name, num_sets=64, num_ways=8)`, a
  set-associative LRU cache with 64-byte lines. An access to the same line
  as the previous access counts as a hit straight away. `access(address)`
  returns `True` on a hit; `statistics_line()` returns a one-line summary.
  Set and way counts must be powers of two (`ValueError` otherwise).
  `fetch_points(instructions)` takes `(vaddr, size)` pairs of one block and
  returns the values to feed an instruction cache: the first instruction's
  line number, then the last byte address of every instruction that ends
  on a new line.
- `uarchsim.bbv` — `BBVProfiler(directory="result", interval_size=100_000_000,
  target_name="", check_ibar=False)` creates `bbv`, `pc_info.txt`, `log.txt`
  and `syscall.txt` in `directory`. Call `translate_block(pc, codes)` once
  per translated block and `execute_block(pc)` on each execution; a `T:id:n`
  vector line is written every `interval_size` instructions (or on
  `dump_bbv()`). `syscall` and `syscall_return` log system calls. With
  `check_ibar=True` and `target_name="loongarch64"`, counting starts at the
  marker word `0x38728040`, and translating `0x38728041` raises
  `SystemExit(0)`. `close()` writes the summary and returns the instruction
  count line. It is also a context manager.
- `uarchsim.indirect` — `classify_block(pcs, codes)` returns a `BlockInfo`
  whose `indirect_type` is 1 or 2 when the last five instruction words
  match an indirect call or jump dispatch sequence. `IndirectBranchStats`
  counts them with `execute(block)` and `report()` returns
  `call_count,call_miss,jump_count,jump_miss`.
- `uarchsim.trace_format` — `TraceRecord`, one trace record (pc, branch
  flags, 2 destination and 4 source registers, 2 store and 4 load addresses,
  optionally the 32-bit instruction word). `pack`/`unpack`, `add_memory`,
  `record_size(with_inst)` (64 or 72 bytes) and `read_trace(path, with_inst)`.
- `uarchsim.tracer` — `TraceConfig` and `config_from_env(environ=None)`,
  which reads `TRACE_COUNT`, `TRACE_SKIP_COUNT`, `TRACE_FILENAME`, `VERBOSE`
  and `EARLY_EXIT`. `ChampsimTracer(config)` skips `skip_count` instructions
  and then records up to `trace_count`; feed it with `execute(template)` and
  `memory_access(vaddr, is_store)`, then `close()`.
- `uarchsim.marker_tracer` — `MarkerTracer(config)` opens
  `<filename>_<n>` each time `translate(code)` sees the marker word
  `0x2200`, and records up to `trace_count` instructions with their
  instruction words. `template_key(pc, code)` builds a key from a pc and a
  32-bit word.
- `uarchsim.simpoint` — `parse_simpoints(text)` reads `<interval> <weight>`
  pairs, largest interval first; `apply_warmup(points)` shifts each one
  back an interval for warm-up and rejects overlaps. `SimpointTracer(points,
  interval=10000, filename="champsim.trace")` writes one trace per point to
  `<filename>_<count>`.

In every tracer, a template's `branch_taken` holds the instruction size;
when the next pc arrives it becomes 1 if that pc is not the fall-through
address and 0 otherwise.

## Examples

```python
from uarchsim.simple_cache import SimpleCache, fetch_points

cache = SimpleCache("dcache")
for address in (0x1000, 0x1008, 0x2000, 0x1000):
    cache.access(address)
print(cache.statistics_line(), end="")

print(fetch_points([(0x1000, 4), (0x103E, 4)]))  # [64, 4161]
```

```python
from uarchsim.simpoint import parse_simpoints, apply_warmup

points = parse_simpoints("12 0\n3 1\n40 2\n")  # [40, 12, 3]
print(apply_warmup(points))                     # [39, 11, 2]
```

```python
from uarchsim.trace_format import TraceRecord, read_trace
from uarchsim.tracer import ChampsimTracer, TraceConfig

config = TraceConfig(trace_count=100, skip_count=0, filename="demo.trace")
with ChampsimTracer(config) as tracer:
    for pc in (0x400000, 0x400004, 0x400100):
        tracer.execute(TraceRecord(ip=pc, branch_taken=4))
print([hex(r.ip) for r in read_trace("demo.trace")])
```

## What it does not do

- It does not attach to an emulator; the caller supplies translated blocks,
  executed instructions and memory accesses.
- It does not decode instructions. Branch kinds and register numbers in a
  `TraceRecord` template are whatever the caller fills in.
- It has no branch predictor models and no cache with other replacement
  policies than LRU.
- It has no command-line program.

## Requirements

Python 3.10 or newer; nothing outside the standard library. Tests use
pytest (`pip install .[test]`).