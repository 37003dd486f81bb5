from authledger.services.passwords import digest, hash_password, needs_rehash, verify_password


def test_digest_is_deterministic_hex():
    assert digest("Secr3t!") == digest("Secr3t!")
    assert digest("Secr3t!") != digest("secr3t!")
    assert len(digest("")) == 64
    int(digest(""), 16)


def test_digest_is_plain_sha256():
    assert digest("") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def test_hash_password_is_salted_and_verifies():
    first = hash_password("Secr3t!")
    second = hash_password("Secr3t!")

    assert first != second
    assert verify_password("Secr3t!", first)
    assert verify_password("Secr3t!", second)
    assert not verify_password("wrong", first)
    assert not needs_rehash(first)


def test_long_passwords_are_not_truncated():
    base = "x" * 100
    stored = hash_password(base + "a")

    assert verify_password(base + "a", stored)
    assert not verify_password(base + "b", stored)


def test_legacy_digest_still_verifies_and_needs_rehash():
    legacy = digest("Secr3t!")

    assert verify_password("Secr3t!", legacy)
    assert not verify_password("wrong", legacy)
    assert needs_rehash(legacy)


def test_garbage_hash_never_verifies():
    assert not verify_password("anything", "not-a-hash")
