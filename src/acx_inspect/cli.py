from pathlib import Path

import click

from acx_core import CoderError, discriminator_hex
from acx_core.protocol import DISCRIMINATOR_SIZE
from .logic import canonical_json, decode_report, encode_json, load_coder

IDL_PATH = click.Path(exists=True, dir_okay=False, path_type=Path)


@click.group()
def main():
    pass


@main.command("discriminator")
@click.argument("names", nargs=-1, required=True)
def discriminator_cmd(names):
    for name in names:
        click.echo(f"{name} {discriminator_hex(name)}")


@main.command("encode")
@click.argument("idl", type=IDL_PATH)
@click.argument("name")
@click.argument("value")
@click.option("--out", type=click.Path(dir_okay=False, path_type=Path), help="Write raw bytes here instead of hex to stdout")
def encode_cmd(idl: Path, name: str, value: str, out):
    try:
        data = encode_json(load_coder(idl), name, value)
    except CoderError as e:
        click.echo(f"FATAL: {e}")
        raise SystemExit(1)
    if out is None:
        click.echo(data.hex())
    else:
        out.write_bytes(data)


@main.command("decode")
@click.argument("idl", type=IDL_PATH)
@click.argument("name")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--no-verify", is_flag=True, help="Skip the discriminator check")
def decode_cmd(idl: Path, name: str, path: Path, no_verify: bool):
    try:
        coder = load_coder(idl)
    except CoderError as e:
        click.echo(f"FATAL: {e}")
        raise SystemExit(1)
    result = decode_report(coder, name, path.read_bytes(), verify=not no_verify)
    click.echo(canonical_json(result))
    if result["status"] != "PASS":
        raise SystemExit(1)


@main.command("resolve")
@click.argument("idl", type=IDL_PATH)
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def resolve_cmd(idl: Path, path: Path):
    try:
        coder = load_coder(idl)
    except CoderError as e:
        click.echo(f"FATAL: {e}")
        raise SystemExit(1)
    name = coder.resolve_type_name(path.read_bytes()[:DISCRIMINATOR_SIZE])
    if name is None:
        click.echo("UNRECOGNIZED")
        raise SystemExit(1)
    click.echo(name)


if __name__ == "__main__":
    main()
