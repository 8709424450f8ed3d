"""Password hashing with libsodium's argon2id (PyNaCl).

Hashes are stored as the ASCII modular-crypt string produced by libsodium,
which embeds the salt and cost parameters.
"""

import nacl.exceptions
import nacl.pwhash


def hash_password(password: str) -> str:
    """Hash a plaintext password for storage."""
    return nacl.pwhash.argon2id.str(password.encode("utf-8")).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored hash.

    Returns False (never raises) for a mismatch or a malformed hash.
    """
    try:
        return nacl.pwhash.verify(password_hash.encode("ascii"), password.encode("utf-8"))
    except (nacl.exceptions.InvalidkeyError, nacl.exceptions.CryptoError, UnicodeEncodeError):
        return False
