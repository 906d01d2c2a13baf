"""ACX - Binary layouts derived from IDL type definitions.

Encoding is Borsh compatible: little-endian fixed width integers, u32
length prefixes for strings, bytes and vecs, one byte tags for options and
enum variants, struct fields in declared order without padding.
"""
from __future__ import annotations

import struct
from collections.abc import Mapping, Sequence
from typing import Any

from .errors import LayoutError, SchemaError
from .protocol import MAX_ACCOUNT_SIZE, PUBLIC_KEY_LEN

LEN_PREFIX_FMT = "<I"
LEN_PREFIX_LEN = 4

_INT_WIDTHS = {
    "u8": (1, False), "i8": (1, True),
    "u16": (2, False), "i16": (2, True),
    "u32": (4, False), "i32": (4, True),
    "u64": (8, False), "i64": (8, True),
    "u128": (16, False), "i128": (16, True),
}
_FLOAT_FMTS = {"f32": "<f", "f64": "<d"}


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _take(data: bytes, offset: int, n: int) -> bytes:
    end = offset + n
    if end > len(data):
        raise LayoutError(f"need {n} bytes, {max(len(data) - offset, 0)} left", offset=offset)
    return data[offset:end]


class Layout:
    """Encodes one IDL type. ``span`` is the fixed byte size, or None."""

    span: int | None = None

    def encode(self, value: Any) -> bytes:
        out = bytearray()
        try:
            self.write(value, out, "")
        except RecursionError:
            raise LayoutError("value nested too deeply") from None
        return bytes(out)

    def decode(self, data: bytes) -> Any:
        try:
            value, _ = self.read(bytes(data), 0)
        except RecursionError:
            # Recursive types: crafted bytes can nest past the interpreter limit.
            raise LayoutError("payload nested too deeply", offset=0) from None
        return value

    def write(self, value: Any, out: bytearray, path: str) -> None:
        raise NotImplementedError

    def read(self, data: bytes, offset: int) -> tuple[Any, int]:
        raise NotImplementedError

    def to_json(self, value: Any) -> Any:
        return value

    def from_json(self, obj: Any, path: str = "") -> Any:
        return obj


class IntLayout(Layout):
    def __init__(self, width: int, signed: bool):
        self.span = width
        self.signed = signed

    def write(self, value, out, path):
        if isinstance(value, bool) or not isinstance(value, int):
            raise LayoutError(f"expected int, got {type(value).__name__}", path=path)
        try:
            out += value.to_bytes(self.span, "little", signed=self.signed)
        except OverflowError:
            kind = "i" if self.signed else "u"
            raise LayoutError(f"{value} out of range for {kind}{self.span * 8}", path=path)

    def read(self, data, offset):
        raw = _take(data, offset, self.span)
        return int.from_bytes(raw, "little", signed=self.signed), offset + self.span


class FloatLayout(Layout):
    def __init__(self, fmt: str):
        self.fmt = fmt
        self.span = struct.calcsize(fmt)

    def write(self, value, out, path):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise LayoutError(f"expected float, got {type(value).__name__}", path=path)
        try:
            out += struct.pack(self.fmt, value)
        except (struct.error, OverflowError) as e:
            raise LayoutError(str(e), path=path)

    def read(self, data, offset):
        (value,) = struct.unpack(self.fmt, _take(data, offset, self.span))
        return value, offset + self.span


class BoolLayout(Layout):
    span = 1

    def write(self, value, out, path):
        if not isinstance(value, bool):
            raise LayoutError(f"expected bool, got {type(value).__name__}", path=path)
        out.append(1 if value else 0)

    def read(self, data, offset):
        b = _take(data, offset, 1)[0]
        if b > 1:
            raise LayoutError(f"invalid bool byte {b}", offset=offset)
        return b == 1, offset + 1


class BytesLayout(Layout):
    """Length-prefixed raw bytes, or exactly ``fixed`` bytes when given."""

    def __init__(self, fixed: int | None = None):
        self.fixed = fixed
        self.span = fixed

    def write(self, value, out, path):
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise LayoutError(f"expected bytes, got {type(value).__name__}", path=path)
        value = bytes(value)
        if self.fixed is None:
            out += struct.pack(LEN_PREFIX_FMT, len(value))
        elif len(value) != self.fixed:
            raise LayoutError(f"expected {self.fixed} bytes, got {len(value)}", path=path)
        out += value

    def read(self, data, offset):
        if self.fixed is not None:
            return _take(data, offset, self.fixed), offset + self.fixed
        (n,) = struct.unpack(LEN_PREFIX_FMT, _take(data, offset, LEN_PREFIX_LEN))
        start = offset + LEN_PREFIX_LEN
        return _take(data, start, n), start + n

    def to_json(self, value):
        return value.hex()

    def from_json(self, obj, path=""):
        if not isinstance(obj, str):
            raise LayoutError("expected hex string", path=path)
        try:
            return bytes.fromhex(obj)
        except ValueError as e:
            raise LayoutError(str(e), path=path)


class StringLayout(Layout):
    def write(self, value, out, path):
        if not isinstance(value, str):
            raise LayoutError(f"expected str, got {type(value).__name__}", path=path)
        raw = value.encode("utf-8")
        out += struct.pack(LEN_PREFIX_FMT, len(raw))
        out += raw

    def read(self, data, offset):
        (n,) = struct.unpack(LEN_PREFIX_FMT, _take(data, offset, LEN_PREFIX_LEN))
        start = offset + LEN_PREFIX_LEN
        raw = _take(data, start, n)
        try:
            return raw.decode("utf-8"), start + n
        except UnicodeDecodeError as e:
            raise LayoutError(f"invalid utf-8: {e.reason}", offset=start + e.start)


class OptionLayout(Layout):
    def __init__(self, inner: Layout):
        self.inner = inner

    def write(self, value, out, path):
        if value is None:
            out.append(0)
            return
        out.append(1)
        self.inner.write(value, out, path)

    def read(self, data, offset):
        tag = _take(data, offset, 1)[0]
        if tag == 0:
            return None, offset + 1
        if tag != 1:
            raise LayoutError(f"invalid option tag {tag}", offset=offset)
        return self.inner.read(data, offset + 1)

    def to_json(self, value):
        return None if value is None else self.inner.to_json(value)

    def from_json(self, obj, path=""):
        return None if obj is None else self.inner.from_json(obj, path)


class SeqLayout(Layout):
    """``vec`` when ``count`` is None (u32 prefix), ``array`` otherwise."""

    def __init__(self, inner: Layout, count: int | None = None):
        self.inner = inner
        self.count = count
        if count is not None and inner.span is not None:
            self.span = inner.span * count

    def write(self, value, out, path):
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Sequence):
            raise LayoutError(f"expected list, got {type(value).__name__}", path=path)
        if self.count is None:
            out += struct.pack(LEN_PREFIX_FMT, len(value))
        elif len(value) != self.count:
            raise LayoutError(f"expected {self.count} items, got {len(value)}", path=path)
        for i, item in enumerate(value):
            self.inner.write(item, out, f"{path}[{i}]")

    def read(self, data, offset):
        count = self.count
        if count is None:
            (count,) = struct.unpack(LEN_PREFIX_FMT, _take(data, offset, LEN_PREFIX_LEN))
            span = self.inner.span
            left = len(data) - offset - LEN_PREFIX_LEN
            if (span == 0 and count > MAX_ACCOUNT_SIZE) or (span and count * span > left):
                raise LayoutError(f"vec count {count} exceeds remaining bytes", offset=offset)
            offset += LEN_PREFIX_LEN
        items = []
        for _ in range(count):
            item, offset = self.inner.read(data, offset)
            items.append(item)
        return items, offset

    def to_json(self, value):
        return [self.inner.to_json(v) for v in value]

    def from_json(self, obj, path=""):
        if not isinstance(obj, list):
            raise LayoutError("expected list", path=path)
        return [self.inner.from_json(v, f"{path}[{i}]") for i, v in enumerate(obj)]


class StructLayout(Layout):
    def __init__(self, fields: list[tuple[str, Layout]]):
        self.fields = fields
        spans = [layout.span for _, layout in fields]
        if all(s is not None for s in spans):
            self.span = sum(spans)

    def write(self, value, out, path):
        if not isinstance(value, Mapping):
            raise LayoutError(f"expected mapping, got {type(value).__name__}", path=path)
        names = {name for name, _ in self.fields}
        extra = sorted(set(value) - names)
        if extra:
            raise LayoutError(f"unexpected fields {extra}", path=path)
        for name, layout in self.fields:
            if name not in value:
                raise LayoutError("missing field", path=_join(path, name))
            layout.write(value[name], out, _join(path, name))

    def read(self, data, offset):
        value = {}
        for name, layout in self.fields:
            value[name], offset = layout.read(data, offset)
        return value, offset

    def to_json(self, value):
        return {name: layout.to_json(value[name]) for name, layout in self.fields}

    def from_json(self, obj, path=""):
        if not isinstance(obj, dict):
            raise LayoutError("expected object", path=path)
        out = dict(obj)
        for name, layout in self.fields:
            if name in obj:
                out[name] = layout.from_json(obj[name], _join(path, name))
        return out


class TupleLayout(Layout):
    def __init__(self, items: list[Layout]):
        self.items = items
        spans = [layout.span for layout in items]
        if all(s is not None for s in spans):
            self.span = sum(spans)

    def write(self, value, out, path):
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Sequence):
            raise LayoutError(f"expected list, got {type(value).__name__}", path=path)
        if len(value) != len(self.items):
            raise LayoutError(f"expected {len(self.items)} items, got {len(value)}", path=path)
        for i, (item, layout) in enumerate(zip(value, self.items)):
            layout.write(item, out, f"{path}[{i}]")

    def read(self, data, offset):
        values = []
        for layout in self.items:
            item, offset = layout.read(data, offset)
            values.append(item)
        return values, offset

    def to_json(self, value):
        return [layout.to_json(v) for layout, v in zip(self.items, value)]

    def from_json(self, obj, path=""):
        if not isinstance(obj, list) or len(obj) != len(self.items):
            raise LayoutError(f"expected list of {len(self.items)}", path=path)
        return [layout.from_json(v, f"{path}[{i}]") for i, (layout, v) in enumerate(zip(self.items, obj))]


class EnumLayout(Layout):
    """u8 variant index followed by the variant's fields.

    Values are one-key mappings ``{variant: fields}``; unit variants carry None.
    """

    def __init__(self, variants: list[tuple[str, Layout | None]]):
        if len(variants) > 256:
            raise SchemaError(f"{len(variants)} variants do not fit a u8 tag")
        self.variants = variants
        self.index = {name: i for i, (name, _) in enumerate(variants)}
        sizes = {0 if layout is None else layout.span for _, layout in variants}
        if len(sizes) == 1 and None not in sizes:
            self.span = 1 + sizes.pop()

    def write(self, value, out, path):
        if not isinstance(value, Mapping) or len(value) != 1:
            raise LayoutError("expected single-key mapping {variant: fields}", path=path)
        ((name, fields),) = value.items()
        if name not in self.index:
            raise LayoutError(f"unknown variant {name!r}", path=path)
        i = self.index[name]
        out.append(i)
        layout = self.variants[i][1]
        if layout is None:
            if fields not in (None, {}, []):
                raise LayoutError("unit variant takes no fields", path=_join(path, name))
            return
        layout.write(fields, out, _join(path, name))

    def read(self, data, offset):
        i = _take(data, offset, 1)[0]
        if i >= len(self.variants):
            raise LayoutError(f"invalid variant index {i}", offset=offset)
        name, layout = self.variants[i]
        if layout is None:
            return {name: None}, offset + 1
        fields, offset = layout.read(data, offset + 1)
        return {name: fields}, offset

    def to_json(self, value):
        ((name, fields),) = value.items()
        layout = self.variants[self.index[name]][1]
        return {name: None if layout is None else layout.to_json(fields)}

    def from_json(self, obj, path=""):
        if not isinstance(obj, dict) or len(obj) != 1:
            raise LayoutError("expected single-key object", path=path)
        ((name, fields),) = obj.items()
        if name not in self.index:
            raise LayoutError(f"unknown variant {name!r}", path=path)
        layout = self.variants[self.index[name]][1]
        return {name: None if layout is None else layout.from_json(fields, _join(path, name))}


class _Forward(Layout):
    """Placeholder for a defined type still being derived (recursive types)."""

    def __init__(self, name: str):
        self.name = name
        self.target: Layout | None = None

    def write(self, value, out, path):
        self.target.write(value, out, path)

    def read(self, data, offset):
        return self.target.read(data, offset)

    def to_json(self, value):
        return self.target.to_json(value)

    def from_json(self, obj, path=""):
        return self.target.from_json(obj, path)


class LayoutDeriver:
    """Turns IDL type definitions into layouts, sharing ``defined`` lookups."""

    def __init__(self, types: Sequence[Mapping] | None = None):
        self.typedefs: dict[str, Mapping] = {}
        for typedef in types or ():
            self.typedefs[_typedef_name(typedef)] = typedef
        self._cache: dict[str, Layout] = {}

    def derive(self, typedef: Mapping) -> Layout:
        name = _typedef_name(typedef)
        self.typedefs.setdefault(name, typedef)
        return self._build(typedef)

    def resolve(self, name: str) -> Layout:
        if name in self._cache:
            return self._cache[name]
        if name not in self.typedefs:
            raise SchemaError(f"undefined type {name!r}", type_name=name)
        fwd = _Forward(name)
        self._cache[name] = fwd
        layout = self._build(self.typedefs[name])
        fwd.target = layout
        self._cache[name] = layout
        return layout

    def _build(self, typedef: Mapping) -> Layout:
        name = _typedef_name(typedef)
        ty = typedef.get("type")
        if not isinstance(ty, Mapping):
            raise SchemaError("missing 'type'", type_name=name)
        kind = ty.get("kind")
        if kind == "struct":
            return StructLayout(self._named_fields(ty.get("fields", []), name))
        if kind == "enum":
            variants = []
            for v in ty.get("variants", []):
                if not isinstance(v, Mapping) or not isinstance(v.get("name"), str):
                    raise SchemaError(f"malformed variant {v!r}", type_name=name)
                fields = v.get("fields")
                variants.append((v["name"], self._variant_fields(fields, name) if fields else None))
            return EnumLayout(variants)
        raise SchemaError(f"unsupported kind {kind!r}", type_name=name)

    def _named_fields(self, fields, owner: str) -> list[tuple[str, Layout]]:
        out = []
        for f in fields:
            if not isinstance(f, Mapping) or "name" not in f or "type" not in f:
                raise SchemaError(f"malformed field {f!r}", type_name=owner)
            out.append((f["name"], self.field(f["type"], owner)))
        return out

    def _variant_fields(self, fields, owner: str) -> Layout:
        if all(isinstance(f, Mapping) and "name" in f and "type" in f for f in fields):
            return StructLayout(self._named_fields(fields, owner))
        return TupleLayout([self.field(f, owner) for f in fields])

    def field(self, ty: Any, owner: str = "") -> Layout:
        if isinstance(ty, str):
            if ty in _INT_WIDTHS:
                return IntLayout(*_INT_WIDTHS[ty])
            if ty in _FLOAT_FMTS:
                return FloatLayout(_FLOAT_FMTS[ty])
            if ty == "bool":
                return BoolLayout()
            if ty == "string":
                return StringLayout()
            if ty == "bytes":
                return BytesLayout()
            if ty == "publicKey":
                return BytesLayout(PUBLIC_KEY_LEN)
            raise SchemaError(f"unknown primitive {ty!r}", type_name=owner)
        if isinstance(ty, Mapping) and len(ty) == 1:
            ((key, arg),) = ty.items()
            if key == "vec":
                return SeqLayout(self.field(arg, owner))
            if key == "option":
                return OptionLayout(self.field(arg, owner))
            if key == "array":
                if (
                    not isinstance(arg, Sequence) or len(arg) != 2
                    or isinstance(arg[1], bool) or not isinstance(arg[1], int) or arg[1] < 0
                ):
                    raise SchemaError(f"malformed array {arg!r}", type_name=owner)
                return SeqLayout(self.field(arg[0], owner), arg[1])
            if key == "defined":
                # Newer IDLs spell it {"defined": {"name": ...}}
                if isinstance(arg, Mapping):
                    arg = arg.get("name")
                if not isinstance(arg, str):
                    raise SchemaError(f"malformed defined {ty!r}", type_name=owner)
                return self.resolve(arg)
        raise SchemaError(f"unsupported type {ty!r}", type_name=owner)


def _typedef_name(typedef: Any) -> str:
    if not isinstance(typedef, Mapping) or not isinstance(typedef.get("name"), str):
        raise SchemaError(f"type definition without a name: {typedef!r}")
    return typedef["name"]


def derive_layout(typedef: Mapping, types: Sequence[Mapping] | None = None) -> Layout:
    """Derive the layout of one type definition against ``types``."""
    return LayoutDeriver(types).derive(typedef)
