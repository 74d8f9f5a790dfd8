import time

import pytest

from authcore.domain.two_factor import TwoFactorManager
from authcore.infrastructure.security import kdf as kdf_mod
from authcore.infrastructure.security import password as password_mod
from authcore.infrastructure.security.kdf import (
    Argon2Engine,
    HashingOptions,
    ScryptEngine,
)
from authcore.infrastructure.security.password import PasswordHasher
from authcore.settings import get_settings
from tests.fakes import FakeCredentialStore


@pytest.fixture(autouse=True)
def reset_cached_singletons():
    """Settings, KDF engine and hasher are process-wide; start every test clean."""
    get_settings.cache_clear()
    kdf_mod.get_kdf_engine.cache_clear()
    password_mod.get_password_hasher.cache_clear()
    yield
    get_settings.cache_clear()
    kdf_mod.get_kdf_engine.cache_clear()
    password_mod.get_password_hasher.cache_clear()


@pytest.fixture()
def fast_options():
    return HashingOptions(memory_cost=1024, time_cost=1, parallelism=1, salt_length=16)


@pytest.fixture()
def argon2_hasher(fast_options):
    return PasswordHasher(Argon2Engine(), fast_options)


@pytest.fixture()
def scrypt_hasher(fast_options):
    return PasswordHasher(ScryptEngine(), fast_options)


@pytest.fixture(params=["argon2", "scrypt"])
def any_hasher(request, fast_options):
    engine = Argon2Engine() if request.param == "argon2" else ScryptEngine()
    return PasswordHasher(engine, fast_options)


@pytest.fixture()
def store():
    return FakeCredentialStore()


@pytest.fixture()
def manager():
    return TwoFactorManager(issuer="QuantumJUD", qr_base_url="https://qr.example.test/qr")


@pytest.fixture()
def non_utc_host(monkeypatch):
    """Run the test with the process local time zone set to UTC-5."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "EST+05")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
