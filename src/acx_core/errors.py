"""Error codes and exceptions raised by the account coder."""
from __future__ import annotations

ERRORS = {
  "E_UNKNOWN_TYPE": "Account type not registered",
  "E_BUFFER_TOO_SHORT": "Buffer shorter than account discriminator",
  "E_ENCODING_FAILED": "Value does not conform to account layout",
  "E_DECODING_FAILED": "Bytes do not conform to account layout",
  "E_DISCRIMINATOR_MISMATCH": "Embedded discriminator does not match account type",
  "E_SCHEMA_INVALID": "Type definition cannot be turned into a layout",
  "E_STORE_CORRUPT": "Account store is corrupt",
}


class CoderError(ValueError):
    code = "E_CODER"

    def __init__(self, detail: str = "", **context):
        self.detail = detail
        self.context = context
        message = ERRORS.get(self.code, self.code)
        super().__init__(f"{message}: {detail}" if detail else message)

    def to_dict(self) -> dict:
        out = {"code": self.code, "message": ERRORS.get(self.code, self.code)}
        if self.detail:
            out["detail"] = self.detail
        out.update(self.context)
        return out


class UnknownType(CoderError):
    code = "E_UNKNOWN_TYPE"


class BufferTooShort(CoderError):
    code = "E_BUFFER_TOO_SHORT"


class EncodingFailed(CoderError):
    code = "E_ENCODING_FAILED"


class DecodingFailed(CoderError):
    code = "E_DECODING_FAILED"


class DiscriminatorMismatch(CoderError):
    code = "E_DISCRIMINATOR_MISMATCH"


class SchemaError(CoderError):
    code = "E_SCHEMA_INVALID"


class StoreError(CoderError):
    code = "E_STORE_CORRUPT"


class LayoutError(Exception):
    """Raised by layouts; the coder rewraps it with the account type name.

    ``path`` locates the offending field on encode, ``offset`` the offending
    byte on decode.
    """

    def __init__(self, reason: str, path: str = "", offset: int | None = None):
        self.reason = reason
        self.path = path
        self.offset = offset
        where = path or (f"offset {offset}" if offset is not None else "")
        super().__init__(f"{where}: {reason}" if where else reason)
