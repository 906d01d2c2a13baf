from __future__ import annotations

import hashlib
import json
import struct
from collections import Counter
from pathlib import Path
from typing import BinaryIO, Iterable
from warnings import warn

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from acx_core import AccountsCoder, CoderError, StoreError
from acx_core.protocol import (
    MAGIC_STORE_FILE,
    MAGIC_ACCOUNT_REC,
    VERSION,
    REC_HEADER_FMT,
    REC_HEADER_LEN,
    FILE_HEADER_LEN,
    DISCRIMINATOR_SIZE,
    MAX_ACCOUNT_SIZE,
    DEFAULT_MAX_RESYNC_BYTES,
    DEFAULT_MAX_GARBAGE_BYTES,
)

CANONICAL_JSON_KW = {"sort_keys": True, "separators": (",", ":"), "ensure_ascii": False}

SCAN_SCHEMA = pa.schema(
    [
        ("slot", pa.int64()),
        ("offset", pa.int64()),
        ("length", pa.int32()),
        ("discriminator", pa.string()),
        ("type_name", pa.string()),
        ("status", pa.string()),
        ("content_hash", pa.string()),
        ("value_json", pa.string()),
    ]
)


class StoreWriter:
    """Appends framed account buffers to a store file."""

    def __init__(self, file_handle: BinaryIO):
        self.f = file_handle
        self.f.write(MAGIC_STORE_FILE)

    def append(self, slot: int, data: bytes) -> int:
        """Write one record. Returns the record's offset."""
        if len(data) > MAX_ACCOUNT_SIZE:
            raise StoreError(f"account of {len(data)} bytes exceeds limit {MAX_ACCOUNT_SIZE}")
        offset = self.f.tell()
        header = struct.pack(REC_HEADER_FMT, MAGIC_ACCOUNT_REC, VERSION, slot, len(data))
        self.f.write(header + data)
        return offset


def write_store(path: Path, records: Iterable[tuple[int, bytes]]) -> None:
    with open(path, "wb") as f:
        writer = StoreWriter(f)
        for slot, data in records:
            writer.append(slot, data)


class StoreScanner:
    """Walks a store file and classifies every account by its discriminator.

    - Record magic is checked per header; on corruption the scanner resyncs
      to the next record magic.
    - Undecodable accounts are reported, not raised.
    """

    def __init__(self, store_path: Path, coder: AccountsCoder):
        self.store_path = Path(store_path)
        self.coder = coder
        self.scan_stats = {
            "corrupt_headers": 0,
            "garbage_bytes": 0,
            "resyncs": 0,
            "records": 0,
        }

    def _resync_to_magic(self, f: BinaryIO, magic_bytes: bytes, start_pos: int) -> int:
        """Find the next account record header after a damaged one.

        Account data may itself contain the record magic, so a hit is only a
        candidate header. Returns its absolute offset, or -1 once
        DEFAULT_MAX_RESYNC_BYTES have been searched.
        """
        chunk_size = 64 * 1024  # 64KB
        scanned = 0

        # Carry the tail of each chunk so a magic split across reads is found.
        overlap = len(magic_bytes) - 1
        prev_tail = b""

        f.seek(start_pos)
        while scanned < DEFAULT_MAX_RESYNC_BYTES:
            chunk = f.read(chunk_size)
            if not chunk:
                return -1

            hay = prev_tail + chunk
            pos = hay.find(magic_bytes)
            if pos != -1:
                start_of_hay = f.tell() - len(hay)
                return start_of_hay + pos

            prev_tail = hay[-overlap:] if overlap > 0 else b""
            scanned += len(chunk)

        return -1

    def records(self):
        """Yield ``(slot, offset, data)`` for every intact record."""
        with open(self.store_path, "rb") as f:
            if f.read(FILE_HEADER_LEN) != MAGIC_STORE_FILE:
                raise StoreError(f"invalid store file header in {self.store_path}")

            while True:
                start_off = f.tell()
                header = f.read(REC_HEADER_LEN)

                # Clean EOF
                if len(header) == 0:
                    break

                if len(header) < REC_HEADER_LEN:
                    warn(f"Truncated record header at offset {start_off}")
                    break

                magic, ver, slot, dlen = struct.unpack(REC_HEADER_FMT, header)

                # 1. Magic check and resync
                if magic != MAGIC_ACCOUNT_REC:
                    self.scan_stats["corrupt_headers"] += 1
                    warn(f"Corrupt record magic {magic!r} at offset {start_off}. Resyncing.")

                    next_off = self._resync_to_magic(f, MAGIC_ACCOUNT_REC, start_off + 1)
                    if next_off == -1:
                        warn("Unable to resync account store. Stopping scan.")
                        break

                    garbage = next_off - start_off
                    self.scan_stats["garbage_bytes"] += int(garbage)
                    self.scan_stats["resyncs"] += 1

                    if garbage > DEFAULT_MAX_GARBAGE_BYTES:
                        warn(f"Large garbage span during resync: {garbage} bytes")

                    f.seek(next_off)
                    continue

                # 2. Sanity checks
                if ver != VERSION:
                    raise StoreError(f"record version {int(ver)} at slot {int(slot)}", offset=start_off)

                if dlen > MAX_ACCOUNT_SIZE:
                    raise StoreError(
                        f"record size {int(dlen)} exceeds limit {MAX_ACCOUNT_SIZE}", offset=start_off
                    )

                # 3. Payload read
                data = f.read(dlen)
                if len(data) != dlen:
                    warn(f"Torn record payload at slot {int(slot)}. Stopping scan.")
                    break

                self.scan_stats["records"] += 1
                yield int(slot), int(start_off), data

    def classify(self, slot: int, offset: int, data: bytes) -> dict:
        row = {
            "slot": slot,
            "offset": offset,
            "length": REC_HEADER_LEN + len(data),
            "discriminator": None,
            "type_name": None,
            "status": "TOO_SHORT",
            "content_hash": hashlib.sha256(data).hexdigest(),
            "value_json": None,
        }
        if len(data) < DISCRIMINATOR_SIZE:
            return row

        tag = data[:DISCRIMINATOR_SIZE]
        row["discriminator"] = tag.hex()
        name = self.coder.resolve_type_name(tag)
        if name is None:
            row["status"] = "UNRECOGNIZED"
            return row

        row["type_name"] = name
        try:
            value = self.coder.decode(name, data)
        except CoderError as e:
            warn(f"Undecodable {name} account at slot {slot}: {e}")
            row["status"] = "DECODE_FAILED"
            return row

        jsonable = self.coder.layout(name).to_json(value)
        row["status"] = "DECODED"
        row["value_json"] = json.dumps(jsonable, **CANONICAL_JSON_KW)
        return row

    def scan(self) -> list[dict]:
        return [self.classify(slot, offset, data) for slot, offset, data in self.records()]

    def get_scan_stats(self) -> dict:
        return dict(self.scan_stats)


def compile_scan_table(store_path: Path, coder: AccountsCoder, out_path: Path) -> dict:
    """Build accounts.parquet for a store. Returns a scan summary."""
    scanner = StoreScanner(store_path, coder)
    rows = scanner.scan()

    Path(out_path).mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame(rows, columns=SCAN_SCHEMA.names)
    if df.empty:
        table = SCAN_SCHEMA.empty_table()
    else:
        table = pa.Table.from_pandas(df, schema=SCAN_SCHEMA, preserve_index=False)
    pq.write_table(table, Path(out_path) / "accounts.parquet")

    return {
        "scan_stats": scanner.get_scan_stats(),
        "statuses": dict(Counter(r["status"] for r in rows)),
        "types": dict(Counter(r["type_name"] for r in rows if r["type_name"])),
    }
