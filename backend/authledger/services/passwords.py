"""Password hashing."""
import base64
import hashlib
import hmac

import bcrypt

LEGACY_DIGEST_LENGTH = 64


def digest(plaintext: str) -> str:
    """Unsalted SHA-256 hex digest.

    This is how passwords were stored before bcrypt; it is kept to verify
    (and upgrade) those hashes and is never used to store new ones.
    """
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def _prehash(plaintext: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return base64.b64encode(hashlib.sha256(plaintext.encode("utf-8")).digest())


def is_legacy_hash(stored_hash: str) -> bool:
    return len(stored_hash) == LEGACY_DIGEST_LENGTH and not stored_hash.startswith("$2")


def hash_password(plaintext: str) -> str:
    """Hash a password with a fresh salt."""
    return bcrypt.hashpw(_prehash(plaintext), bcrypt.gensalt()).decode("utf-8")


def verify_password(plaintext: str, stored_hash: str) -> bool:
    """Verify a password against a bcrypt hash or a legacy digest."""
    if is_legacy_hash(stored_hash):
        return hmac.compare_digest(digest(plaintext), stored_hash)
    try:
        return bcrypt.checkpw(_prehash(plaintext), stored_hash.encode("utf-8"))
    except ValueError:
        return False


def needs_rehash(stored_hash: str) -> bool:
    return is_legacy_hash(stored_hash)
