"""Refresh Token Registry — verifies the per-user expiring set of refresh tokens.

Tests:
    - Added tokens validate until their expiry, then stop validating
    - remove() succeeds exactly once per token
    - Expired members are neither removable nor kept around after the next add()
    - remove_all() revokes every device of one user only
    - Only digests are stored
"""

from sqlalchemy import select

from casecoach.models.refresh_token import RefreshToken
from casecoach.models.user import User
from casecoach.services.refresh_registry import RefreshTokenRegistry, token_digest


class _Clock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


async def _user(db, alias: str) -> User:
    user = User(kind="anonymous", name=f"Guest-{alias}", device_alias=alias)
    db.add(user)
    await db.flush()
    return user


async def test_added_token_validates_until_expiry(test_db):
    clock = _Clock()
    registry = RefreshTokenRegistry(test_db, clock=clock)
    user = await _user(test_db, "dev-1")

    await registry.add(user.id, "token-a", ttl_seconds=60)
    assert await registry.validate(user.id, "token-a")

    clock.now += 61
    assert not await registry.validate(user.id, "token-a")


async def test_unknown_token_does_not_validate(test_db):
    registry = RefreshTokenRegistry(test_db)
    user = await _user(test_db, "dev-1")
    assert not await registry.validate(user.id, "never-added")


async def test_remove_succeeds_exactly_once(test_db):
    registry = RefreshTokenRegistry(test_db)
    user = await _user(test_db, "dev-1")
    await registry.add(user.id, "token-a", ttl_seconds=60)

    assert await registry.remove(user.id, "token-a") is True
    assert await registry.remove(user.id, "token-a") is False
    assert not await registry.validate(user.id, "token-a")


async def test_expired_member_not_removable(test_db):
    clock = _Clock()
    registry = RefreshTokenRegistry(test_db, clock=clock)
    user = await _user(test_db, "dev-1")
    await registry.add(user.id, "token-a", ttl_seconds=60)

    clock.now += 120
    assert await registry.remove(user.id, "token-a") is False


async def test_add_purges_expired_members(test_db):
    clock = _Clock()
    registry = RefreshTokenRegistry(test_db, clock=clock)
    user = await _user(test_db, "dev-1")
    await registry.add(user.id, "old", ttl_seconds=60)

    clock.now += 120
    await registry.add(user.id, "new", ttl_seconds=60)

    rows = (await test_db.execute(
        select(RefreshToken.token_hash).where(RefreshToken.user_id == user.id),
    )).scalars().all()
    assert rows == [token_digest("new")]


async def test_remove_all_is_scoped_to_user(test_db):
    registry = RefreshTokenRegistry(test_db)
    alice = await _user(test_db, "dev-a")
    bob = await _user(test_db, "dev-b")
    await registry.add(alice.id, "a1", ttl_seconds=60)
    await registry.add(alice.id, "a2", ttl_seconds=60)
    await registry.add(bob.id, "b1", ttl_seconds=60)

    assert await registry.remove_all(alice.id) == 2
    assert not await registry.validate(alice.id, "a1")
    assert await registry.validate(bob.id, "b1")


async def test_token_of_other_user_does_not_validate(test_db):
    registry = RefreshTokenRegistry(test_db)
    alice = await _user(test_db, "dev-a")
    bob = await _user(test_db, "dev-b")
    await registry.add(alice.id, "a1", ttl_seconds=60)
    assert not await registry.validate(bob.id, "a1")


async def test_only_digest_is_stored(test_db):
    registry = RefreshTokenRegistry(test_db)
    user = await _user(test_db, "dev-1")
    await registry.add(user.id, "plain-token", ttl_seconds=60)

    stored = (await test_db.execute(select(RefreshToken.token_hash))).scalar_one()
    assert stored != "plain-token"
    assert len(stored) == 64
