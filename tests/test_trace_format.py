import pytest

from uarchsim.trace_format import TraceRecord, read_trace, record_size


def _sample():
    return TraceRecord(
        ip=0x400123,
        is_branch=1,
        branch_taken=1,
        destination_registers=[3, 4],
        source_registers=[5, 6, 7, 8],
        destination_memory=[0x7FFF0000, 0],
        source_memory=[0x1000, 0x2000, 0, 0],
        inst=0xD503201F,
    )


def test_record_sizes_follow_layout():
    assert record_size(False) == 64
    assert record_size(True) == 72


def test_ip_is_little_endian_first_field():
    data = TraceRecord(ip=0x0102030405060708).pack()
    assert data[:8] == bytes.fromhex("0807060504030201")
    assert len(data) == record_size(False)


def test_round_trip_without_inst():
    rec = _sample()
    back = TraceRecord.unpack(rec.pack(), with_inst=False)
    assert back.ip == rec.ip
    assert back.source_registers == rec.source_registers
    assert back.destination_memory == rec.destination_memory
    assert back.source_memory == rec.source_memory
    assert back.inst == 0


def test_round_trip_with_inst():
    rec = _sample()
    back = TraceRecord.unpack(rec.pack(with_inst=True), with_inst=True)
    assert back == rec


def test_short_lists_are_padded():
    rec = TraceRecord(source_registers=[9])
    assert rec.source_registers == [9, 0, 0, 0]
    assert rec.destination_memory == [0, 0]


def test_too_many_registers_rejected():
    with pytest.raises(ValueError):
        TraceRecord(destination_registers=[1, 2, 3])


def test_add_memory_fills_first_free_slot():
    rec = TraceRecord()
    assert rec.add_memory(0x10, is_store=True)
    assert rec.add_memory(0x20, is_store=True)
    assert not rec.add_memory(0x30, is_store=True)
    assert rec.destination_memory == [0x10, 0x20]
    assert rec.add_memory(0x40, is_store=False)
    assert rec.source_memory == [0x40, 0, 0, 0]


def test_unpack_wrong_length():
    with pytest.raises(ValueError):
        TraceRecord.unpack(b"\x00" * 10)


def test_read_trace(tmp_path):
    path = tmp_path / "t.trace"
    records = [_sample(), TraceRecord(ip=0x99)]
    path.write_bytes(b"".join(r.pack() for r in records))
    back = read_trace(path)
    assert [r.ip for r in back] == [0x400123, 0x99]
    assert back[0].source_memory == records[0].source_memory


def test_read_trace_bad_size(tmp_path):
    path = tmp_path / "bad.trace"
    path.write_bytes(b"\x00" * 65)
    with pytest.raises(ValueError):
        read_trace(path)