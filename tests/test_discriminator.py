import hashlib
import random
import string

from acx_core import account_discriminator, discriminator_hex

from conftest import COUNTER_TAG, POOL_TAG, POSITION_TAG


def test_counter_fixture():
    assert account_discriminator("Counter") == COUNTER_TAG
    assert discriminator_hex("Counter") == "ffb004f5bcfd7c19"


def test_known_names():
    assert account_discriminator("Position") == POSITION_TAG
    assert account_discriminator("Pool") == POOL_TAG


def test_matches_truncated_sha256():
    for name in ["a", "TokenLedger", "Ünïcode", ""]:
        want = hashlib.sha256(f"account:{name}".encode("utf-8")).digest()[:8]
        assert account_discriminator(name) == want


def test_deterministic_and_eight_bytes():
    assert account_discriminator("Pool") == account_discriminator("Pool")
    assert len(account_discriminator("x" * 1000)) == 8


def test_case_sensitive():
    assert account_discriminator("counter") != account_discriminator("Counter")


def test_distinct_over_sampled_name_sets():
    # Probabilistic: 64 bit tags make a collision among a few hundred names
    # vanishingly unlikely, it is not a guarantee.
    rng = random.Random(1234)
    alphabet = string.ascii_letters + string.digits
    for _ in range(200):
        names = {"".join(rng.choice(alphabet) for _ in range(rng.randrange(1, 24))) for _ in range(50)}
        tags = {account_discriminator(n) for n in names}
        assert len(tags) == len(names)
