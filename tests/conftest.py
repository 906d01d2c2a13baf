import json
from pathlib import Path

import pytest

from acx_core import AccountsCoder

REPO = Path(__file__).resolve().parents[1]
DEMO_IDL_PATH = REPO / "examples" / "demo_idl.json"

# sha256("account:<name>")[:8]
COUNTER_TAG = bytes.fromhex("ffb004f5bcfd7c19")
POSITION_TAG = bytes.fromhex("aabc8fe47a40f7d0")
POOL_TAG = bytes.fromhex("f19a6d0411b16dbc")
VAULT_TAG = bytes.fromhex("d308e82b02987577")


@pytest.fixture
def demo_idl():
    return json.loads(DEMO_IDL_PATH.read_text(encoding="utf-8"))


@pytest.fixture
def coder(demo_idl):
    return AccountsCoder(demo_idl)


@pytest.fixture
def position():
    return {
        "owner": bytes(range(32)),
        "side": {"Short": None},
        "sizeUsd": 1_500_000_000,
        "collateral": -250,
        "openTime": 1_760_000_000,
        "closedAt": None,
        "bump": 254,
    }


@pytest.fixture
def pool():
    return {
        "name": "SOL-USDC",
        "custodies": [b"\x01" * 32, b"\x02" * 32],
        "fees": {"openBps": 6, "closeBps": 7, "tiers": [1, 2, 3]},
        "aumUsd": 2**100 + 5,
        "active": True,
    }
