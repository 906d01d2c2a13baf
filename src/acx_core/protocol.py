"""ACX protocol constants.

Single source of truth for account tags, size bounds and store layouts.
Keep this file stable. Writers and scanners must remain synchronized.
"""

# Account tags
ACCOUNT_NAMESPACE = "account"
DISCRIMINATOR_SIZE = 8

# Solana caps account data at 10 MiB; anything larger cannot be stored.
MAX_ACCOUNT_SIZE = 10 * 1024 * 1024  # 10 MiB

PUBLIC_KEY_LEN = 32

# Store file and record magics
MAGIC_STORE_FILE = b"ACXS"  # Store file header
MAGIC_ACCOUNT_REC = b"ACXR"  # Account record header

VERSION = 1

# Header: [Magic(4) | Ver(1) | Slot(4) | Length(4)] = 13 bytes
REC_HEADER_FMT = "<4sBII"
REC_HEADER_LEN = 13
FILE_HEADER_LEN = 4

# Resynchronization bounds
DEFAULT_MAX_RESYNC_BYTES = 64 * 1024 * 1024  # 64 MiB scan window per corruption event
DEFAULT_MAX_GARBAGE_BYTES = 256 * 1024  # 256 KiB maximum tolerated garbage between records
