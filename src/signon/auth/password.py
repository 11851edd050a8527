"""Password hashing and verification.

Stored hashes are self-describing: SHA-512 crypt (``$6$...``) is the default
format produced by ``signon hash-password``; bcrypt hashes (``$2a$``,
``$2b$``, ``$2y$``) are accepted as well.
"""

import logging

import bcrypt
from passlib.hash import sha512_crypt

logger = logging.getLogger(__name__)

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")

# The crypt(3) default; passlib would otherwise pick a much higher count.
SHA512_ROUNDS = 5000


def hash_password(password: str) -> str:
    """Hash a password with SHA-512 crypt and a random salt."""
    return sha512_crypt.using(rounds=SHA512_ROUNDS).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored hash.

    Returns False for malformed hashes or unknown schemes instead of raising.
    """
    if not password_hash:
        return False
    try:
        if password_hash.startswith(_BCRYPT_PREFIXES):
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        if sha512_crypt.identify(password_hash):
            return sha512_crypt.verify(password, password_hash)
    except ValueError as e:
        logger.debug(f"Rejecting malformed password hash: {e}")
        return False
    return False
