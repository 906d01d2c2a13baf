import json
from pathlib import Path

from acx_core import AccountsCoder, CoderError
from acx_core.errors import EncodingFailed, LayoutError, SchemaError

CANONICAL_JSON_KW = {"sort_keys": True, "separators": (",", ":"), "ensure_ascii": False}


def _load_json(path: Path):
    return json.loads(Path(path).read_text(encoding="utf-8"))


def canonical_json(obj) -> str:
    return json.dumps(obj, **CANONICAL_JSON_KW)


def load_coder(idl_path: Path) -> AccountsCoder:
    try:
        idl = _load_json(idl_path)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SchemaError(f"{idl_path} is not a JSON IDL: {e}") from e
    return AccountsCoder(idl)


def value_from_json(coder: AccountsCoder, name: str, obj):
    """Turn the JSON form of an account (bytes as hex) into a value."""
    layout = coder.layout(name)
    try:
        return layout.from_json(obj)
    except LayoutError as e:
        raise EncodingFailed(str(e), type_name=name, path=e.path) from e


def value_to_json(coder: AccountsCoder, name: str, value):
    return coder.layout(name).to_json(value)


def encode_json(coder: AccountsCoder, name: str, text: str) -> bytes:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise EncodingFailed(f"value is not JSON: {e}", type_name=name) from e
    return coder.encode(name, value_from_json(coder, name, obj))


def decode_report(coder: AccountsCoder, name: str, data: bytes, verify: bool = True) -> dict:
    try:
        value = coder.decode(name, data, verify=verify)
    except CoderError as e:
        return {"status": "FAIL", "error": e.to_dict()}
    return {"status": "PASS", "type_name": name, "value": value_to_json(coder, name, value)}
