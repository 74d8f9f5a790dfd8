import pytest

from authcore.domain.services import (
    TEMPORARY_PASSWORD_CHARSET,
    base32_decode,
    base32_encode,
    generate_temporary_password,
    make_reset_token,
    secure_compare,
    sha256_hex,
    verify_reset_token,
)


def test_secure_compare_behavior():
    assert secure_compare("abcd", "abcd") is True
    assert secure_compare("abcd", "abce") is False
    assert secure_compare("", "") is True
    assert secure_compare("a", "") is False
    assert secure_compare(b"\x00\x01", b"\x00\x01") is True


def test_secure_compare_handles_non_ascii_and_mixed_types():
    assert secure_compare("sénha", "sénha") is True
    assert secure_compare("sénha", "senha") is False
    assert secure_compare("abc", b"abc") is True


def test_base32_known_vector_has_no_padding():
    assert base32_encode(b"12345678901234567890") == "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
    assert base32_encode(b"f") == "MY"


def test_base32_decode_is_lenient_about_case_spaces_and_padding():
    assert base32_decode("my") == b"f"
    assert base32_decode("MY======") == b"f"
    assert base32_decode("GEZD GNBV GY3T QOJQ GEZD GNBV GY3T QOJQ") == b"12345678901234567890"


@pytest.mark.parametrize("bad", ["1", "M0", "ABC!"])
def test_base32_decode_rejects_garbage(bad):
    with pytest.raises(ValueError):
        base32_decode(bad)


def test_temporary_password_uses_unambiguous_charset():
    seen = set()
    for _ in range(50):
        pwd = generate_temporary_password()
        assert len(pwd) == 12
        assert set(pwd) <= set(TEMPORARY_PASSWORD_CHARSET)
        seen.add(pwd)
    assert len(seen) == 50
    assert len(generate_temporary_password(20)) == 20


def test_reset_token_hash_roundtrip():
    raw, token_hash = make_reset_token()
    assert token_hash == sha256_hex(raw)
    assert len(token_hash) == 64
    assert verify_reset_token(raw, token_hash)
    assert verify_reset_token(raw, token_hash.upper())
    assert not verify_reset_token(raw + "x", token_hash)
