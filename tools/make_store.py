import json, random
from datetime import datetime, timezone
from pathlib import Path

from acx_core import AccountsCoder, account_discriminator
from acx_scan.store import StoreWriter

# --- CONFIGURATION ---
REPO = Path(__file__).resolve().parents[1]
DEMO_IDL = REPO / "examples" / "demo_idl.json"
SIDES = ["None", "Long", "Short"]


def make_counter(rng):
    return {"count": rng.randrange(0, 2**64)}


def make_position(rng):
    closed = rng.random() < 0.3
    open_time = 1_760_000_000 + rng.randrange(0, 86_400)
    return {
        "owner": rng.randbytes(32),
        "side": {rng.choice(SIDES): None},
        "sizeUsd": rng.randrange(0, 10**12),
        "collateral": rng.randrange(-(10**9), 10**9),
        "openTime": open_time,
        "closedAt": open_time + rng.randrange(1, 3600) if closed else None,
        "bump": rng.randrange(0, 256),
    }


def make_pool(rng):
    return {
        "name": f"pool-{rng.randrange(100, 999)}",
        "custodies": [rng.randbytes(32) for _ in range(rng.randrange(1, 5))],
        "fees": {"openBps": 6, "closeBps": 6, "tiers": [rng.randrange(0, 2**32) for _ in range(3)]},
        "aumUsd": rng.randrange(0, 2**100),
        "active": rng.random() < 0.9,
    }


MAKERS = {"Counter": make_counter, "Position": make_position, "Pool": make_pool}


def generate_store(out_dir, accounts=20, foreign=False, seed=None):
    """Write a mixed-type account store under ``out_dir``."""
    rng = random.Random(seed)
    coder = AccountsCoder(json.loads(DEMO_IDL.read_text(encoding="utf-8")))

    path = Path(out_dir)
    path.mkdir(parents=True, exist_ok=True)

    counts = {}
    with open(path / "accounts.bin", "wb") as f:
        writer = StoreWriter(f)
        for slot in range(accounts):
            name = rng.choice(coder.names)
            writer.append(slot, coder.encode(name, MAKERS[name](rng)))
            counts[name] = counts.get(name, 0) + 1

        # An account owned by some other program: valid tag, unknown type.
        if foreign:
            writer.append(accounts, account_discriminator("Vault") + rng.randbytes(40))
            counts["<foreign>"] = 1

    (path / "meta.json").write_text(json.dumps({
        "idl": DEMO_IDL.name,
        "counts": counts,
        "created_at": datetime.now(timezone.utc).replace(microsecond=0).isoformat(),
    }, indent=2) + "\n", encoding="utf-8")

    print(f"GENERATED: {path / 'accounts.bin'}")
    return path / "accounts.bin"


if __name__ == "__main__":
    import sys

    # Usage:
    #   python tools/make_store.py OUT_DIR [--accounts N] [--seed S] [--foreign]

    args = [a for a in sys.argv[1:] if a]

    def pop_flag(arg_list: list[str], flag: str) -> tuple[bool, list[str]]:
        """Remove a boolean flag from an argv-style list."""
        if flag in arg_list:
            return True, [a for a in arg_list if a != flag]
        return False, arg_list

    def pop_value(arg_list: list[str], flag: str) -> tuple[str | None, list[str]]:
        if flag not in arg_list:
            return None, arg_list
        i = arg_list.index(flag)
        if i + 1 >= len(arg_list):
            raise SystemExit(f"{flag} requires a value")
        return arg_list[i + 1], arg_list[:i] + arg_list[i + 2:]

    foreign, args = pop_flag(args, "--foreign")
    n, args = pop_value(args, "--accounts")
    seed, args = pop_value(args, "--seed")

    out = args[0] if len(args) > 0 else "demo_store"
    generate_store(
        out,
        accounts=int(n) if n is not None else 20,
        foreign=foreign,
        seed=int(seed) if seed is not None else None,
    )
