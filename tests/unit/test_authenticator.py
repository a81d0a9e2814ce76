"""
File: tests/unit/test_authenticator.py
Description: 认证器与 Token 解析缓存单元测试
"""

from datetime import timedelta

import pytest

from health_api.core.security import TokenService, token_service
from health_api.db.models.user import User
from health_api.domains.auth.cache import PrincipalCache
from health_api.domains.auth.service import Authenticator, extract_token
from health_api.domains.users.repository import UserRepository


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        (None, None),
        ("", None),
        ("Basic xyz", None),
        ("Bearer", None),
        ("Bearer ", None),
        ("bearer abc", None),
        ("Token abc", "abc"),
        ("Bearer abc.def.ghi", "abc.def.ghi"),
    ],
)
def test_extract_token(header: str | None, expected: str | None) -> None:
    assert extract_token(header) == expected


@pytest.fixture
def authenticator(
    user_repo: UserRepository, principal_cache: PrincipalCache
) -> Authenticator:
    return Authenticator(tokens=token_service, user_repo=user_repo, cache=principal_cache)


@pytest.mark.asyncio
async def test_no_header_is_anonymous(authenticator: Authenticator) -> None:
    assert await authenticator.authenticate(None) is None


@pytest.mark.asyncio
async def test_valid_token_resolves_principal(
    authenticator: Authenticator, stored_user: User, stored_user_token: str, fake_redis
) -> None:
    principal = await authenticator.authenticate(f"Bearer {stored_user_token}")

    assert principal is not None
    assert principal.id == stored_user.id
    assert principal.phone_number == stored_user.phone_number
    assert principal.token == stored_user_token
    assert not hasattr(principal, "hashed_password")

    # 已写入缓存，且缓存值中不含原始 Token
    assert len(fake_redis.store) == 1
    (key, value), = fake_redis.store.items()
    assert stored_user_token not in key
    assert stored_user_token not in value
    assert 0 < fake_redis.ttls[key] <= 3600


@pytest.mark.asyncio
async def test_token_scheme_alias(
    authenticator: Authenticator, stored_user: User, stored_user_token: str
) -> None:
    principal = await authenticator.authenticate(f"Token {stored_user_token}")

    assert principal is not None
    assert principal.id == stored_user.id


@pytest.mark.asyncio
async def test_cached_principal_is_reused(
    authenticator: Authenticator,
    stored_user: User,
    stored_user_token: str,
    user_repo: UserRepository,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    first = await authenticator.authenticate(f"Bearer {stored_user_token}")

    async def fail_get(*args, **kwargs):
        raise AssertionError("cache hit must not query the store")

    monkeypatch.setattr(user_repo, "get", fail_get)
    second = await authenticator.authenticate(f"Bearer {stored_user_token}")

    assert second == first


@pytest.mark.asyncio
async def test_deleted_user_token_is_anonymous(
    authenticator: Authenticator,
    stored_user: User,
    stored_user_token: str,
    user_repo: UserRepository,
) -> None:
    await user_repo.delete(stored_user)
    await user_repo.session.commit()

    assert await authenticator.authenticate(f"Bearer {stored_user_token}") is None


@pytest.mark.asyncio
async def test_expired_token_is_anonymous(
    user_repo: UserRepository, principal_cache: PrincipalCache, stored_user: User
) -> None:
    past = TokenService(
        secret_key=token_service._secret_key,
        clock=lambda: 1_000_000.0,
        lifetime=timedelta(days=1),
    )
    token = past.issue(stored_user.id, stored_user.phone_number)
    authenticator = Authenticator(
        tokens=token_service, user_repo=user_repo, cache=principal_cache
    )

    assert await authenticator.authenticate(f"Bearer {token}") is None


@pytest.mark.asyncio
async def test_garbage_token_is_anonymous(authenticator: Authenticator) -> None:
    assert await authenticator.authenticate("Bearer not-a-jwt") is None


@pytest.mark.asyncio
async def test_cache_ttl_capped_by_token_lifetime(
    user_repo: UserRepository, principal_cache: PrincipalCache, stored_user: User, fake_redis
) -> None:
    short_lived = TokenService(
        secret_key=token_service._secret_key, lifetime=timedelta(seconds=120)
    )
    token = short_lived.issue(stored_user.id, stored_user.phone_number)
    authenticator = Authenticator(
        tokens=short_lived, user_repo=user_repo, cache=principal_cache
    )

    assert await authenticator.authenticate(f"Bearer {token}") is not None

    key = principal_cache._key(token)
    assert 0 < fake_redis.ttls[key] <= 120


@pytest.mark.asyncio
async def test_invalidate_user_clears_entries(
    authenticator: Authenticator,
    stored_user: User,
    stored_user_token: str,
    principal_cache: PrincipalCache,
    fake_redis,
) -> None:
    await authenticator.authenticate(f"Bearer {stored_user_token}")
    assert await principal_cache.get(stored_user_token) is not None

    await principal_cache.invalidate_user(stored_user.id)

    assert await principal_cache.get(stored_user_token) is None
    assert fake_redis.store == {}
    assert fake_redis.sets == {}
