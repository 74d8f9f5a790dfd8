import asyncio

import pytest

from authcore.application.two_factor import (
    confirm_two_factor,
    disable_two_factor,
    start_two_factor,
    verify_second_factor,
)
from authcore.domain.entities import TwoFactorState
from authcore.domain.errors import InvalidTwoFactorTransition
from authcore.domain.totp import totp
from tests.fakes import FIXED_NOW, FakeCredentialStore


async def _activate(store, manager, user_id="u1"):
    enrollment = await start_two_factor(store, manager, user_id, "ana@example.com")
    codes = await confirm_two_factor(
        store, manager, user_id, totp(enrollment.secret, FIXED_NOW), FIXED_NOW
    )
    return enrollment.secret, codes


@pytest.mark.asyncio
async def test_start_persists_pending_config(store, manager):
    enrollment = await start_two_factor(store, manager, "u1", "ana@example.com")
    assert store.configs["u1"].state is TwoFactorState.PENDING
    assert store.configs["u1"].secret == enrollment.secret
    assert len(store.save_config_calls) == 1


@pytest.mark.asyncio
async def test_confirm_persists_active_config(store, manager):
    secret, codes = await _activate(store, manager)
    assert len(codes) == 10
    config = store.configs["u1"]
    assert config.enabled is True
    assert config.secret == secret
    assert len(config.backup_code_hashes) == 10


@pytest.mark.asyncio
async def test_confirm_wrong_code_writes_nothing(store, manager):
    enrollment = await start_two_factor(store, manager, "u1", "ana@example.com")
    right = {totp(enrollment.secret, FIXED_NOW + d) for d in (-30, 0, 30)}
    wrong = next(f"{n:06d}" for n in range(1_000_000) if f"{n:06d}" not in right)

    assert await confirm_two_factor(store, manager, "u1", wrong, FIXED_NOW) is None
    assert len(store.save_config_calls) == 1
    assert store.configs["u1"].enabled is False


@pytest.mark.asyncio
async def test_disable_without_config_raises(store, manager):
    with pytest.raises(InvalidTwoFactorTransition):
        await disable_two_factor(store, manager, "u1", "123456")


@pytest.mark.asyncio
async def test_disable_clears_config(store, manager):
    secret, _ = await _activate(store, manager)
    assert await disable_two_factor(store, manager, "u1", totp(secret, FIXED_NOW), FIXED_NOW)
    assert store.configs["u1"].state is TwoFactorState.NOT_CONFIGURED


@pytest.mark.asyncio
async def test_backup_code_is_single_use(store, manager):
    _, codes = await _activate(store, manager)

    first = await verify_second_factor(store, manager, "u1", codes[0], FIXED_NOW + 3600)
    assert first.is_valid and first.method == "backup_code"
    assert len(store.configs["u1"].backup_code_hashes) == 9

    second = await verify_second_factor(store, manager, "u1", codes[0], FIXED_NOW + 3600)
    assert second.is_valid is False


@pytest.mark.asyncio
async def test_totp_second_factor_does_not_touch_codes(store, manager):
    secret, _ = await _activate(store, manager)
    result = await verify_second_factor(store, manager, "u1", totp(secret, FIXED_NOW), FIXED_NOW)
    assert result.is_valid and result.method == "totp"
    assert store.swap_calls == []


@pytest.mark.asyncio
async def test_concurrent_submissions_of_one_backup_code(manager):
    store = FakeCredentialStore()
    _, codes = await _activate(store, manager)
    store.interleave = True

    results = await asyncio.gather(
        verify_second_factor(store, manager, "u1", codes[1], FIXED_NOW + 3600),
        verify_second_factor(store, manager, "u1", codes[1], FIXED_NOW + 3600),
    )
    assert sorted(r.is_valid for r in results) == [False, True]
    assert len(store.configs["u1"].backup_code_hashes) == 9
    # both read the same snapshot, so both attempted the swap
    assert len(store.swap_calls) == 2


@pytest.mark.asyncio
async def test_disable_with_backup_code_claims_it_through_the_swap(store, manager):
    _, codes = await _activate(store, manager)
    active = store.configs["u1"]

    assert await disable_two_factor(store, manager, "u1", codes[2], FIXED_NOW + 3600)
    assert len(store.swap_calls) == 1
    _, expected, new = store.swap_calls[0]
    assert expected == active.backup_code_hashes
    assert len(new) == 9
    assert store.configs["u1"].state is TwoFactorState.NOT_CONFIGURED


@pytest.mark.asyncio
async def test_disable_and_login_race_on_one_backup_code(manager):
    store = FakeCredentialStore()
    _, codes = await _activate(store, manager)
    store.interleave = True

    disabled, login = await asyncio.gather(
        disable_two_factor(store, manager, "u1", codes[3], FIXED_NOW + 3600),
        verify_second_factor(store, manager, "u1", codes[3], FIXED_NOW + 3600),
    )
    assert [disabled, login.is_valid].count(True) == 1
    if disabled:
        assert store.configs["u1"].state is TwoFactorState.NOT_CONFIGURED
    else:
        assert store.configs["u1"].state is TwoFactorState.ACTIVE
        assert len(store.configs["u1"].backup_code_hashes) == 9
