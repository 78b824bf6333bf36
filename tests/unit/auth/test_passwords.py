from huddle.auth import hash_password, verify_password


class TestPasswords:
    def test_matching_password_verifies(self) -> None:
        encoded = hash_password("hunter2", iterations=1000)

        assert verify_password("hunter2", encoded)
        assert not verify_password("hunter3", encoded)

    def test_hash_format_records_iterations(self) -> None:
        encoded = hash_password("pw", iterations=1234)

        algorithm, iterations, salt, digest = encoded.split("$")
        assert algorithm == "pbkdf2_sha256"
        assert iterations == "1234"
        assert len(salt) == 32
        assert len(digest) == 64

    def test_salts_differ_between_hashes(self) -> None:
        assert hash_password("pw", iterations=1000) != hash_password("pw", iterations=1000)

    def test_unknown_formats_never_match(self) -> None:
        assert not verify_password("pw", "plaintext")
        assert not verify_password("pw", "md5$1000$salt$digest")
        assert not verify_password("pw", "pbkdf2_sha256$zero$salt$digest")
        assert not verify_password("pw", "pbkdf2_sha256$0$salt$digest")
