"""Shared settings and credential hashing."""

import hashlib

SESSION_NAME = "usersession"


def hash_md5(password):
    """Return the lowercase hex MD5 digest of a password."""
    return hashlib.md5(password.encode("utf-8")).hexdigest()