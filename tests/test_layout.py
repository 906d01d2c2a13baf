import pytest

from acx_core import SchemaError, derive_layout
from acx_core.errors import LayoutError
from acx_core.layout import LayoutDeriver


def struct(name, *fields):
    return {"name": name, "type": {"kind": "struct", "fields": [{"name": n, "type": t} for n, t in fields]}}


def field(ty):
    return LayoutDeriver().field(ty)


@pytest.mark.parametrize(
    "ty,value,raw",
    [
        ("u8", 255, b"\xff"),
        ("i8", -1, b"\xff"),
        ("u16", 0x0102, b"\x02\x01"),
        ("i16", -2, b"\xfe\xff"),
        ("u32", 42, b"\x2a\x00\x00\x00"),
        ("u64", 42, b"\x2a" + b"\x00" * 7),
        ("i64", -1, b"\xff" * 8),
        ("u128", 1, b"\x01" + b"\x00" * 15),
        ("bool", True, b"\x01"),
        ("f64", 1.5, b"\x00\x00\x00\x00\x00\x00\xf8\x3f"),
        ("string", "hi", b"\x02\x00\x00\x00hi"),
        ("bytes", b"\xaa\xbb", b"\x02\x00\x00\x00\xaa\xbb"),
        ({"option": "u8"}, None, b"\x00"),
        ({"option": "u8"}, 5, b"\x01\x05"),
        ({"vec": "u16"}, [1, 2], b"\x02\x00\x00\x00\x01\x00\x02\x00"),
        ({"array": ["u8", 3]}, [7, 8, 9], b"\x07\x08\x09"),
    ],
)
def test_primitive_encoding(ty, value, raw):
    layout = field(ty)
    assert layout.encode(value) == raw
    assert layout.decode(raw) == value


def test_public_key_is_fixed_32_bytes():
    layout = field("publicKey")
    assert layout.span == 32
    assert layout.encode(b"\x09" * 32) == b"\x09" * 32
    with pytest.raises(LayoutError):
        layout.encode(b"\x09" * 31)


def test_struct_fields_in_order_without_padding():
    layout = derive_layout(struct("Fees", ("openBps", "u16"), ("closeBps", "u16"), ("tiers", {"array": ["u32", 3]})))
    raw = layout.encode({"openBps": 6, "closeBps": 7, "tiers": [1, 2, 3]})
    assert raw == bytes.fromhex("06000700" "01000000" "02000000" "03000000")
    assert layout.span == 16


def test_enum_variants():
    types = [
        {
            "name": "Action",
            "type": {
                "kind": "enum",
                "variants": [
                    {"name": "Idle"},
                    {"name": "Move", "fields": [{"name": "dx", "type": "i8"}, {"name": "dy", "type": "i8"}]},
                    {"name": "Say", "fields": ["string"]},
                ],
            },
        }
    ]
    layout = LayoutDeriver(types).resolve("Action")
    assert layout.encode({"Idle": None}) == b"\x00"
    assert layout.encode({"Move": {"dx": -1, "dy": 2}}) == b"\x01\xff\x02"
    assert layout.encode({"Say": ["yo"]}) == b"\x02\x02\x00\x00\x00yo"
    assert layout.decode(b"\x01\xff\x02") == {"Move": {"dx": -1, "dy": 2}}
    assert layout.decode(b"\x00") == {"Idle": None}
    assert layout.span is None


def test_recursive_type():
    types = [struct("Node", ("value", "u8"), ("children", {"vec": {"defined": "Node"}}))]
    layout = LayoutDeriver(types).resolve("Node")
    tree = {"value": 1, "children": [{"value": 2, "children": []}]}
    assert layout.decode(layout.encode(tree)) == tree


def test_trailing_bytes_ignored():
    layout = field("u16")
    assert layout.decode(b"\x01\x00\xde\xad") == 1


@pytest.mark.parametrize(
    "ty,value",
    [
        ("u8", 256),
        ("u64", -1),
        ("i8", 128),
        ("u32", "1"),
        ("u32", True),
        ("bool", 1),
        ("string", b"x"),
        ({"vec": "u8"}, b"abc"),
        ({"array": ["u8", 2]}, [1]),
        ("f32", 1e300),
    ],
)
def test_nonconforming_values_rejected(ty, value):
    with pytest.raises(LayoutError):
        field(ty).encode(value)


def test_encode_error_carries_field_path():
    layout = derive_layout(struct("Outer", ("inner", {"vec": "u8"})))
    with pytest.raises(LayoutError) as exc:
        layout.encode({"inner": [1, 300]})
    assert exc.value.path == "inner[1]"


def test_missing_and_unexpected_fields():
    layout = derive_layout(struct("Counter", ("count", "u64")))
    with pytest.raises(LayoutError, match="missing field"):
        layout.encode({})
    with pytest.raises(LayoutError, match="unexpected fields"):
        layout.encode({"count": 1, "extra": 2})


@pytest.mark.parametrize(
    "ty,raw,offset",
    [
        ("u32", b"\x01\x02", 0),
        ("bool", b"\x02", 0),
        ({"option": "u8"}, b"\x07", 0),
        ("string", b"\x05\x00\x00\x00ab", 4),
        ("string", b"\x01\x00\x00\x00\xff", 4),
    ],
)
def test_malformed_bytes_report_offset(ty, raw, offset):
    with pytest.raises(LayoutError) as exc:
        field(ty).decode(raw)
    assert exc.value.offset == offset


@pytest.mark.parametrize(
    "typedef",
    [
        struct("Bad", ("x", "u7")),
        struct("Bad", ("x", {"defined": "Missing"})),
        struct("Bad", ("x", {"array": ["u8", -1]})),
        {"name": "Bad", "type": {"kind": "union"}},
        {"name": "Bad"},
        {"type": {"kind": "struct", "fields": []}},
    ],
)
def test_malformed_schema(typedef):
    with pytest.raises(SchemaError):
        derive_layout(typedef)


def test_json_surface_renders_bytes_as_hex():
    layout = derive_layout(struct("Holder", ("owner", "publicKey"), ("memo", {"option": "bytes"})))
    value = {"owner": b"\x01" * 32, "memo": b"\xca\xfe"}
    jsonable = layout.to_json(value)
    assert jsonable == {"owner": "01" * 32, "memo": "cafe"}
    assert layout.from_json(jsonable) == value


def test_defined_accepts_name_object():
    types = [struct("Inner", ("x", "u8"))]
    layout = derive_layout(struct("Outer", ("inner", {"defined": {"name": "Inner"}})), types)
    assert layout.encode({"inner": {"x": 3}}) == b"\x03"
