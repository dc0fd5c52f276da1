"""Tests for argon2id password hashing."""

from questhub.auth.password import check_needs_rehash, hash_password, verify_password


class TestPasswordHashing:
    def test_hash_is_argon2id(self):
        assert hash_password("S3cure-pass!").startswith("$argon2id$")

    def test_hashes_are_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_verify(self):
        hashed = hash_password("S3cure-pass!")
        assert verify_password("S3cure-pass!", hashed)
        assert not verify_password("wrong", hashed)

    def test_garbage_hash_does_not_raise(self):
        assert not verify_password("anything", "not-a-hash")

    def test_fresh_hash_needs_no_rehash(self):
        assert not check_needs_rehash(hash_password("pw"))
