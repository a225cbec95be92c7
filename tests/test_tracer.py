import os

import pytest

from uarchsim.trace_format import TraceRecord, read_trace, record_size
from uarchsim.tracer import ChampsimTracer, TraceConfig, config_from_env


def _tpl(ip, size=4, is_branch=0):
    return TraceRecord(ip=ip, is_branch=is_branch, branch_taken=size)


def test_config_defaults_from_empty_env():
    cfg = config_from_env({})
    assert cfg == TraceConfig()
    assert cfg.trace_count == 10000
    assert cfg.filename == "champsim.trace"


def test_config_reads_env():
    cfg = config_from_env(
        {"VERBOSE": "", "TRACE_COUNT": "42", "TRACE_SKIP_COUNT": "7x", "TRACE_FILENAME": "out.bin"}
    )
    assert cfg.verbose is True
    assert cfg.early_exit is False
    assert cfg.trace_count == 42
    assert cfg.skip_count == 7
    assert cfg.filename == "out.bin"


def test_config_non_numeric_count_is_zero():
    assert config_from_env({"TRACE_COUNT": "abc"}).trace_count == 0


def test_full_trace(tmp_path):
    path = tmp_path / "t.trace"
    cfg = TraceConfig(trace_count=3, skip_count=1, filename=str(path))
    a, b, c = _tpl(0x1000), _tpl(0x1004, is_branch=3), _tpl(0x2000, is_branch=1)
    with ChampsimTracer(cfg) as tracer:
        tracer.execute(a)
        tracer.memory_access(0x9000, True)  # skipped
        tracer.execute(a)
        tracer.memory_access(0x5000, True)
        tracer.memory_access(0x6000, False)
        tracer.execute(b)
        tracer.execute(c)
        tracer.execute(a)
    records = read_trace(path)
    assert [r.ip for r in records] == [0x1000, 0x1004, 0x2000]
    assert [r.branch_taken for r in records] == [0, 1, 1]
    assert records[0].destination_memory == [0x5000, 0]
    assert records[0].source_memory[0] == 0x6000
    assert records[1].is_branch == 3


def test_template_not_modified(tmp_path):
    cfg = TraceConfig(trace_count=5, skip_count=0, filename=str(tmp_path / "t"))
    a = _tpl(0x1000)
    with ChampsimTracer(cfg) as tracer:
        tracer.execute(a)
        tracer.memory_access(0x5000, False)
        tracer.execute(_tpl(0x1004))
    assert a.branch_taken == 4
    assert a.source_memory == [0, 0, 0, 0]


def test_partial_trace_drops_unresolved_record(tmp_path):
    path = tmp_path / "t.trace"
    cfg = TraceConfig(trace_count=10, skip_count=0, filename=str(path))
    with ChampsimTracer(cfg) as tracer:
        tracer.execute(_tpl(0x1000))
        tracer.execute(_tpl(0x1004))
    records = read_trace(path)
    assert len(records) == 1
    assert records[0].ip == 0x1000
    assert records[0].branch_taken == 0


def test_no_execution_keeps_full_size(tmp_path):
    path = tmp_path / "t.trace"
    cfg = TraceConfig(trace_count=4, skip_count=0, filename=str(path))
    ChampsimTracer(cfg).close()
    assert os.path.getsize(path) == 4 * record_size(False)


def test_early_exit_when_full(tmp_path):
    cfg = TraceConfig(trace_count=1, skip_count=0, filename=str(tmp_path / "t"), early_exit=True)
    tracer = ChampsimTracer(cfg)
    tracer.execute(_tpl(0x1000))
    with pytest.raises(SystemExit) as info:
        tracer.execute(_tpl(0x1004))
    assert info.value.code == 0


def test_negative_count_rejected(tmp_path):
    with pytest.raises(ValueError):
        ChampsimTracer(TraceConfig(trace_count=-1, filename=str(tmp_path / "t")))