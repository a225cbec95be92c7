import pytest

from uarchsim.bbv import IBAR_BEGIN, IBAR_END, BBVProfiler

NOP = 0x03400000


def _read(path):
    return path.read_text()


def test_log_records_target(tmp_path):
    with BBVProfiler(tmp_path, interval_size=10, target_name="x86_64"):
        pass
    assert _read(tmp_path / "log.txt").startswith("target_arch:x86_64\n")


def test_pc_info_written_once_per_block(tmp_path):
    with BBVProfiler(tmp_path, interval_size=10) as prof:
        prof.translate_block(0x4000, [NOP] * 3)
        prof.translate_block(0x4000, [NOP] * 3)
        prof.translate_block(0x5000, [NOP] * 2)
    lines = _read(tmp_path / "pc_info.txt").splitlines()
    assert lines == ["id:1, pc:4000, bb_insn_num:3", "id:2, pc:5000, bb_insn_num:2"]


def test_counts_reset_after_dump(tmp_path):
    with BBVProfiler(tmp_path, interval_size=1) as prof:
        prof.translate_block(0x100, [NOP])
        prof.translate_block(0x200, [NOP])
        prof.execute_block(0x100)
        prof.execute_block(0x200)
    lines = _read(tmp_path / "bbv").splitlines()
    assert len(lines) == 2
    assert lines[0].split() == ["T:1:1"]
    assert lines[1].split() == ["T:2:1"]


def test_syscall_logging(tmp_path):
    with BBVProfiler(tmp_path) as prof:
        prof.syscall(64)
        prof.syscall_return(64, -2)
    assert _read(tmp_path / "syscall.txt") == (
        "icount:0, syscall #64\nicount:0, syscall #64 returned -> -2\n"
    )


def test_unknown_block_raises(tmp_path):
    with BBVProfiler(tmp_path) as prof:
        with pytest.raises(KeyError):
            prof.execute_block(0xDEAD)


def test_invalid_interval(tmp_path):
    with pytest.raises(ValueError):
        BBVProfiler(tmp_path, interval_size=0)


def test_check_ibar_waits_for_marker(tmp_path):
    with BBVProfiler(tmp_path, interval_size=1, target_name="loongarch64", check_ibar=True) as prof:
        prof.translate_block(0x100, [NOP, NOP])
        prof.execute_block(0x100)
        assert prof.blocks[0x100].count == 0
        assert prof.icount == 2
        prof.translate_block(0x200, [IBAR_BEGIN, NOP])
        assert prof.has_ibar_begin is True
        assert prof.icount == 0
        prof.execute_block(0x200)
    assert _read(tmp_path / "bbv").split() == ["T:2:2"]


def test_ibar_ignored_on_other_targets(tmp_path):
    with BBVProfiler(tmp_path, target_name="aarch64", check_ibar=True) as prof:
        prof.translate_block(0x100, [IBAR_BEGIN, IBAR_END])
        assert prof.has_ibar_begin is False
        assert prof.has_ibar_end is False


def test_ibar_end_exits(tmp_path):
    with BBVProfiler(tmp_path, target_name="loongarch64") as prof:
        with pytest.raises(SystemExit) as excinfo:
            prof.translate_block(0x300, [NOP, IBAR_END])
        assert excinfo.value.code == 0
        assert prof.has_ibar_end is True


def test_close_is_idempotent(tmp_path):
    prof = BBVProfiler(tmp_path)
    first = prof.close()
    assert prof.close() == first
    assert prof.closed is True