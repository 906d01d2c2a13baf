"""ACX Core - Account discriminators, layouts and the account coder."""
from .coder import AccountsCoder
from .discriminator import account_discriminator, discriminator_hex
from .errors import (
    BufferTooShort,
    CoderError,
    DecodingFailed,
    DiscriminatorMismatch,
    EncodingFailed,
    SchemaError,
    StoreError,
    UnknownType,
)
from .layout import derive_layout

__all__ = [
    "AccountsCoder",
    "account_discriminator",
    "discriminator_hex",
    "derive_layout",
    "CoderError",
    "UnknownType",
    "BufferTooShort",
    "EncodingFailed",
    "DecodingFailed",
    "DiscriminatorMismatch",
    "SchemaError",
    "StoreError",
]
