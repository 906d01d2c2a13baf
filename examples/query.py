"""Query a scanned account store - count and list accounts of one type."""
from __future__ import annotations

import sys
from pathlib import Path

import duckdb


def main() -> None:
    if len(sys.argv) < 3:
        print("Usage: python query.py <scan_out> <type_name>")
        print("Example: python query.py scan/ Position")
        sys.exit(1)

    out = Path(sys.argv[1])
    type_name = sys.argv[2]

    con = duckdb.connect(":memory:")
    con.execute(f"CREATE VIEW accounts AS SELECT * FROM '{out}/accounts.parquet'")

    print("--- Store Composition ---")
    for status, n in con.execute(
        "SELECT status, count(*) FROM accounts GROUP BY status ORDER BY status"
    ).fetchall():
        print(f"{status:<14} {n}")
    print()

    print(f"--- Accounts: {type_name} ---\n")
    df = con.execute(
        "SELECT slot, discriminator, value_json FROM accounts "
        "WHERE type_name = ? AND status = 'DECODED' ORDER BY slot",
        [type_name],
    ).fetchdf()
    if df.empty:
        print("No decoded accounts of this type.")
    else:
        for _, row in df.iterrows():
            print(f"SLOT: {row['slot']}")
            print(f"  Tag: {row['discriminator']}")
            print(f"  Value: {row['value_json'][:80]}...")
            print()


if __name__ == "__main__":
    main()
