"""ACX - Account store scanner."""
from __future__ import annotations

import json
from pathlib import Path

import click

from acx_core import AccountsCoder
from acx_scan.store import compile_scan_table


def scan_store(idl_path: Path, store_path: Path, out_path: Path) -> dict:
    """Classify every account in a store and write accounts.parquet."""
    print(f"Scanning store: {store_path}")
    idl = json.loads(idl_path.read_text(encoding="utf-8"))
    coder = AccountsCoder(idl)
    summary = compile_scan_table(store_path, coder, out_path)
    print(f"PASS: Table generated at {out_path / 'accounts.parquet'}")
    return summary


@click.command()
@click.argument("idl", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("store", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("out", type=click.Path(path_type=Path))
@click.option("--strict", is_flag=True, help="Fail if any record is not DECODED")
def main(idl: Path, store: Path, out: Path, strict: bool) -> None:
    """Scan an account store into a Parquet table."""
    try:
        summary = scan_store(idl, store, out)
    except Exception as e:
        # Fail closed with a single-line reason, no stack trace.
        print(f"FATAL: {e}")
        raise SystemExit(1)
    click.echo(json.dumps(summary, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    if strict and (set(summary["statuses"]) - {"DECODED"} or summary["scan_stats"]["corrupt_headers"]):
        raise SystemExit(1)


if __name__ == "__main__":
    main()
