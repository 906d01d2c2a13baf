"""ACX - Account coder.

Encodes and decodes accounts registered in an IDL. Every encoded account is
prefixed with the 8 byte discriminator of its type name.
"""
from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from .discriminator import account_discriminator
from .errors import (
    BufferTooShort,
    DecodingFailed,
    DiscriminatorMismatch,
    EncodingFailed,
    LayoutError,
    SchemaError,
    UnknownType,
)
from .layout import Layout, LayoutDeriver
from .protocol import DISCRIMINATOR_SIZE, MAX_ACCOUNT_SIZE


class AccountsCoder:
    """Encodes and decodes account objects.

    Both lookup tables are built in full before they are published, and are
    read-only afterwards, so a coder can be shared freely between threads.
    A discriminator collision between two names keeps the later name.
    """

    def __init__(self, idl: Mapping | None = None):
        if idl is not None and not isinstance(idl, Mapping):
            raise SchemaError(f"IDL must be an object, got {type(idl).__name__}")
        accounts = (idl or {}).get("accounts") or []
        deriver = LayoutDeriver((idl or {}).get("types") or [])

        layouts: dict[str, Layout] = {}
        for acc in accounts:
            layouts[acc["name"]] = deriver.derive(acc)

        names: dict[bytes, str] = {}
        for name in layouts:
            names[account_discriminator(name)] = name

        self._layouts = MappingProxyType(layouts)
        self._names = MappingProxyType(names)

    @property
    def layouts(self) -> Mapping[str, Layout]:
        return self._layouts

    @property
    def names(self) -> list[str]:
        return list(self._layouts)

    def layout(self, name: str) -> Layout:
        try:
            return self._layouts[name]
        except KeyError:
            raise UnknownType(repr(name), type_name=name) from None

    def discriminator(self, name: str) -> bytes:
        self.layout(name)
        return account_discriminator(name)

    def resolve_type_name(self, tag: bytes) -> str | None:
        """Get the account type name from a discriminator, or None."""
        if len(tag) != DISCRIMINATOR_SIZE:
            return None
        return self._names.get(bytes(tag))

    def size(self, name: str) -> int | None:
        """Encoded size of ``name`` including the tag, None if variable."""
        span = self.layout(name).span
        return None if span is None else DISCRIMINATOR_SIZE + span

    def encode(self, name: str, value: Any) -> bytes:
        layout = self.layout(name)
        try:
            payload = layout.encode(value)
        except LayoutError as e:
            raise EncodingFailed(str(e), type_name=name, path=e.path) from e
        if len(payload) > MAX_ACCOUNT_SIZE:
            raise EncodingFailed(
                f"payload of {len(payload)} bytes exceeds limit {MAX_ACCOUNT_SIZE}",
                type_name=name,
            )
        return account_discriminator(name) + payload

    def decode(self, name: str, data: bytes, *, verify: bool = True) -> Any:
        """Decode an account of type ``name``.

        With ``verify`` the embedded discriminator must match ``name``.
        """
        if len(data) < DISCRIMINATOR_SIZE:
            raise BufferTooShort(f"{len(data)} < {DISCRIMINATOR_SIZE} bytes", type_name=name)
        layout = self.layout(name)
        tag = bytes(data[:DISCRIMINATOR_SIZE])
        if verify:
            expected = account_discriminator(name)
            if tag != expected:
                raise DiscriminatorMismatch(
                    f"expected {expected.hex()}, found {tag.hex()}", type_name=name
                )
        try:
            return layout.decode(data[DISCRIMINATOR_SIZE:])
        except LayoutError as e:
            offset = None if e.offset is None else e.offset + DISCRIMINATOR_SIZE
            raise DecodingFailed(e.reason, type_name=name, offset=offset) from e

    def decode_unchecked(self, name: str, data: bytes) -> Any:
        return self.decode(name, data, verify=False)

    def decode_any(self, data: bytes) -> tuple[str, Any]:
        """Resolve the type from the leading tag, then decode."""
        if len(data) < DISCRIMINATOR_SIZE:
            raise BufferTooShort(f"{len(data)} < {DISCRIMINATOR_SIZE} bytes")
        tag = bytes(data[:DISCRIMINATOR_SIZE])
        name = self.resolve_type_name(tag)
        if name is None:
            raise UnknownType(f"no account type for discriminator {tag.hex()}", discriminator=tag.hex())
        return name, self.decode(name, data, verify=False)
