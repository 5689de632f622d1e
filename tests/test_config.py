from retsu.config import hash_md5


def test_empty_string_digest():
    assert hash_md5("") == "d41d8cd98f00b204e9800998ecf8427e"


def test_digest_shape():
    digest = hash_md5("password")
    assert len(digest) == 32
    assert digest == digest.lower()
    assert all(c in "0123456789abcdef" for c in digest)


def test_deterministic_and_distinct():
    assert hash_md5("password") == hash_md5("password")
    assert hash_md5("password") != hash_md5("secret")