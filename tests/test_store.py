import struct

import pyarrow.parquet as pq
import pytest

from acx_core import AccountsCoder, StoreError, account_discriminator
from acx_core.protocol import MAGIC_ACCOUNT_REC, REC_HEADER_FMT
from acx_scan.store import StoreScanner, compile_scan_table, write_store

from conftest import COUNTER_TAG, VAULT_TAG


@pytest.fixture
def mixed_store(tmp_path, coder, position):
    path = tmp_path / "accounts.bin"
    write_store(
        path,
        [
            (0, coder.encode("Counter", {"count": 42})),
            (1, coder.encode("Position", position)),
            (2, VAULT_TAG + b"\x00" * 24),
            (3, b"\x01\x02\x03"),
            (4, COUNTER_TAG + b"\x01\x02"),
        ],
    )
    return path


def test_classifies_mixed_store(mixed_store, coder):
    scanner = StoreScanner(mixed_store, coder)
    with pytest.warns(UserWarning, match="Undecodable Counter"):
        rows = scanner.scan()

    assert [r["status"] for r in rows] == ["DECODED", "DECODED", "UNRECOGNIZED", "TOO_SHORT", "DECODE_FAILED"]
    assert [r["type_name"] for r in rows] == ["Counter", "Position", None, None, "Counter"]
    assert rows[0]["discriminator"] == "ffb004f5bcfd7c19"
    assert rows[0]["value_json"] == '{"count":42}'
    assert rows[0]["offset"] == 4
    assert rows[0]["length"] == 13 + 16
    assert rows[1]["offset"] == 4 + 13 + 16
    assert scanner.get_scan_stats()["records"] == 5


def test_compile_scan_table(mixed_store, coder, tmp_path):
    out = tmp_path / "scan"
    with pytest.warns(UserWarning):
        summary = compile_scan_table(mixed_store, coder, out)

    assert summary["statuses"] == {"DECODED": 2, "UNRECOGNIZED": 1, "TOO_SHORT": 1, "DECODE_FAILED": 1}
    assert summary["types"] == {"Counter": 2, "Position": 1}

    table = pq.read_table(out / "accounts.parquet")
    assert table.num_rows == 5
    assert table.column("slot").to_pylist() == [0, 1, 2, 3, 4]
    assert table.column("type_name").to_pylist()[2] is None


def test_empty_store(tmp_path, coder):
    store = tmp_path / "accounts.bin"
    write_store(store, [])
    summary = compile_scan_table(store, coder, tmp_path / "scan")
    assert summary["statuses"] == {}
    assert pq.read_table(tmp_path / "scan" / "accounts.parquet").num_rows == 0


def test_resync_after_corrupt_magic(tmp_path, coder):
    store = tmp_path / "accounts.bin"
    write_store(store, [(slot, coder.encode("Counter", {"count": slot})) for slot in range(3)])
    b = bytearray(store.read_bytes())
    b[5] ^= 0x01
    store.write_bytes(bytes(b))

    scanner = StoreScanner(store, coder)
    with pytest.warns(UserWarning, match="Corrupt record magic"):
        rows = scanner.scan()

    assert [r["slot"] for r in rows] == [1, 2]
    stats = scanner.get_scan_stats()
    assert stats["corrupt_headers"] == 1
    assert stats["resyncs"] == 1
    assert stats["garbage_bytes"] == 13 + 16


def test_torn_record_stops_scan(tmp_path, coder):
    store = tmp_path / "accounts.bin"
    write_store(store, [(0, coder.encode("Counter", {"count": 1})), (1, coder.encode("Counter", {"count": 2}))])
    store.write_bytes(store.read_bytes()[:-3])

    with pytest.warns(UserWarning, match="Torn record"):
        rows = StoreScanner(store, coder).scan()
    assert [r["slot"] for r in rows] == [0]


def test_bad_file_header(tmp_path, coder):
    store = tmp_path / "accounts.bin"
    store.write_bytes(b"NOPE")
    with pytest.raises(StoreError):
        StoreScanner(store, coder).scan()


def test_version_mismatch_is_fatal(tmp_path, coder):
    store = tmp_path / "accounts.bin"
    data = coder.encode("Counter", {"count": 1})
    store.write_bytes(b"ACXS" + struct.pack(REC_HEADER_FMT, MAGIC_ACCOUNT_REC, 9, 0, len(data)) + data)
    with pytest.raises(StoreError, match="version"):
        StoreScanner(store, coder).scan()


def test_hostile_record_does_not_abort_scan(tmp_path):
    coder = AccountsCoder({
        "accounts": [
            {"name": "Node", "type": {"kind": "struct", "fields": [{"name": "next", "type": {"option": {"defined": "Node"}}}]}},
        ],
    })
    tag = account_discriminator("Node")
    store = tmp_path / "accounts.bin"
    write_store(store, [(0, tag + b"\x01" * 50_000), (1, coder.encode("Node", {"next": None}))])

    with pytest.warns(UserWarning, match="Undecodable Node"):
        rows = StoreScanner(store, coder).scan()
    assert [r["status"] for r in rows] == ["DECODE_FAILED", "DECODED"]
