from utils.security import CredentialHasher, generate_jti, generate_reset_token, hash_reset_token


def test_password_hash_round_trip():
    hasher = CredentialHasher()
    digest = hasher.hash("secret1")

    assert digest != "secret1"
    assert hasher.verify("secret1", digest)
    assert not hasher.verify("secret2", digest)


def test_verify_rejects_garbage_digest():
    assert not CredentialHasher().verify("secret1", "not-an-argon2-hash")


def test_reset_tokens_are_random_and_digest_is_deterministic():
    first, second = generate_reset_token(), generate_reset_token()

    assert first != second
    assert len(first) == 64
    assert hash_reset_token(first) == hash_reset_token(first)
    assert hash_reset_token(first) != first
    assert CredentialHasher().hash_deterministic(first) == hash_reset_token(first)


def test_jti_is_unique():
    assert generate_jti() != generate_jti()
