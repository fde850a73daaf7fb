"""Outstanding wallet challenges, one per ``(wallet, role)`` pair."""
import abc
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

from redis.asyncio import Redis
from redis.exceptions import WatchError

from rwa_auth.core.challenge import Challenge, ChallengeIssuer
from rwa_auth.core.errors import ChallengeAlreadyUsed, ChallengeExpired, ChallengeNotFound, MalformedChallenge
from rwa_auth.core.redis import get_redis
from rwa_auth.models.role import Role

logger = logging.getLogger(__name__)


class NonceStore(abc.ABC):
    def __init__(self, issuer: ChallengeIssuer, retention_seconds: int = 600):
        self.issuer = issuer
        self.retention = timedelta(seconds=retention_seconds)

    @property
    def clock(self):
        return self.issuer.clock

    @abc.abstractmethod
    async def issue(self, wallet_address: str, role: Role) -> Challenge:
        ...

    @abc.abstractmethod
    async def consume(self, wallet_address: str, role: Role, nonce: str, message: Optional[str] = None) -> str:
        """Mark the matching challenge consumed and return its stored message.

        When ``message`` is given it must equal the stored text; a mismatch
        raises MalformedChallenge and leaves the challenge usable.
        """

    @staticmethod
    def _check(challenge: Optional[Challenge], nonce: str, now: datetime, message: Optional[str] = None) -> None:
        # A different nonce means the challenge was superseded by a newer one
        if challenge is None or challenge.nonce != nonce:
            raise ChallengeNotFound()
        if challenge.consumed:
            raise ChallengeAlreadyUsed()
        if challenge.is_expired(now):
            raise ChallengeExpired()
        if message is not None and message != challenge.message:
            raise MalformedChallenge("Message differs from the issued challenge")


class InMemoryNonceStore(NonceStore):
    """Single-process store guarded by one asyncio lock per key."""

    def __init__(self, issuer: ChallengeIssuer, retention_seconds: int = 600):
        super().__init__(issuer, retention_seconds)
        self._challenges: Dict[Tuple[str, Role], Challenge] = {}
        self._locks: Dict[Tuple[str, Role], asyncio.Lock] = {}

    def _key(self, wallet_address: str, role: Role) -> Tuple[str, Role]:
        return wallet_address.lower(), role

    def _lock(self, key) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    async def issue(self, wallet_address: str, role: Role) -> Challenge:
        key = self._key(wallet_address, role)
        async with self._lock(key):
            challenge = self.issuer.create(wallet_address, role)
            self._challenges[key] = challenge
        return challenge

    async def consume(self, wallet_address: str, role: Role, nonce: str, message: Optional[str] = None) -> str:
        key = self._key(wallet_address, role)
        async with self._lock(key):
            challenge = self._challenges.get(key)
            self._check(challenge, nonce, self.clock(), message)
            challenge.consumed = True
            return challenge.message

    async def purge_expired(self) -> int:
        """Drop challenges whose retention window has passed."""
        cutoff = self.clock() - self.retention
        stale = [key for key, c in self._challenges.items() if c.expires_at <= cutoff]
        purged = 0
        for key in stale:
            lock = self._locks.get(key)
            if lock is not None and lock.locked():
                continue
            del self._challenges[key]
            self._locks.pop(key, None)
            purged += 1
        if purged:
            logger.debug("Purged %d stale challenges", purged)
        return purged

    def __len__(self) -> int:
        return len(self._challenges)


class RedisNonceStore(NonceStore):
    """Shared store for multi-worker deployments.

    Key format: ``challenge:{wallet}:{role}``. Issue is a single overwriting
    SET; consume is a WATCH/MULTI compare-and-swap on that one key.
    """

    def __init__(
        self,
        issuer: ChallengeIssuer,
        retention_seconds: int = 600,
        redis: Optional[Redis] = None,
    ):
        super().__init__(issuer, retention_seconds)
        self._redis = redis

    async def _client(self) -> Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    @staticmethod
    def key(wallet_address: str, role: Role) -> str:
        return f"challenge:{wallet_address.lower()}:{role.value}"

    async def issue(self, wallet_address: str, role: Role) -> Challenge:
        redis = await self._client()
        challenge = self.issuer.create(wallet_address, role)
        ttl = challenge.expires_at - challenge.issued_at + self.retention
        await redis.set(self.key(wallet_address, role), challenge.to_json(), ex=int(ttl.total_seconds()))
        return challenge

    async def consume(self, wallet_address: str, role: Role, nonce: str, message: Optional[str] = None) -> str:
        redis = await self._client()
        key = self.key(wallet_address, role)
        async with redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    challenge = Challenge.from_json(raw) if raw else None
                    self._check(challenge, nonce, self.clock(), message)
                    challenge.consumed = True
                    pipe.multi()
                    pipe.set(key, challenge.to_json(), keepttl=True)
                    await pipe.execute()
                    return challenge.message
                except WatchError:
                    # Key changed between WATCH and EXEC; re-read and decide again
                    continue
