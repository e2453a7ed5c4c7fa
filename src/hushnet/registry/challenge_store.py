"""Challenge store backends for registration and heartbeat nonces.

A challenge is consumed with an atomic check-and-delete: whichever request
removes the nonce first wins, and every other attempt sees it as missing.
Expired and mismatched challenges are deleted by the attempt that finds
them, so a nonce is never usable twice.

Configure via environment variables:
    HUSHNET_CHALLENGE_STORE=postgres|memory|redis  (default: postgres)
    HUSHNET_REDIS_URL=redis://localhost:6379        (redis backend only)
"""

from __future__ import annotations

import json
import logging
import secrets
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from ..core.exceptions import ChallengeExpired, ChallengeNotFound, ConfigException, IdentityMismatch
from .models import Challenge

logger = logging.getLogger(__name__)

DEFAULT_CHALLENGE_TTL_SECONDS = 300

# 24 random bytes, URL-safe base64 without padding
NONCE_BYTES = 24

# Key prefix for Redis to avoid collisions
_REDIS_KEY_PREFIX = "hushnet:challenge:"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


def generate_nonce() -> str:
    """Generate an unguessable nonce from the OS CSPRNG."""
    return secrets.token_urlsafe(NONCE_BYTES)


class ChallengeStore(ABC):
    """Abstract interface for challenge storage.

    Subclasses implement the three storage primitives; issue() and
    consume() build the protocol semantics on top of them.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_CHALLENGE_TTL_SECONDS, clock: Clock = utcnow) -> None:
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def issue(self, pubkey_b64: str) -> Challenge:
        """Create and store a fresh challenge for a claimed public key."""
        challenge = Challenge(
            nonce=generate_nonce(),
            pubkey_b64=pubkey_b64,
            expires_at=self._clock() + self.ttl,
        )
        self._insert(challenge)
        logger.debug("Issued challenge %s... for %s", challenge.nonce[:8], pubkey_b64[:12])
        return challenge

    def consume(self, nonce: str, expected_pubkey_b64: str) -> Challenge:
        """Atomically fetch-and-delete a challenge and validate it.

        Raises:
            ChallengeNotFound: the nonce is unknown or already consumed.
            ChallengeExpired: the nonce expired (it is deleted anyway).
            IdentityMismatch: the nonce was issued to another key.
        """
        challenge = self._take(nonce)
        if challenge is None:
            raise ChallengeNotFound("Unknown or already used nonce", nonce=nonce)
        if challenge.is_expired(self._clock()):
            raise ChallengeExpired("Nonce expired", nonce=nonce)
        if challenge.pubkey_b64 != expected_pubkey_b64:
            raise IdentityMismatch("Nonce was issued to a different public key", nonce=nonce)
        return challenge

    @abstractmethod
    def _insert(self, challenge: Challenge) -> None:
        """Store a new challenge."""
        ...

    @abstractmethod
    def _take(self, nonce: str) -> Challenge | None:
        """Remove and return a challenge in one indivisible step."""
        ...

    @abstractmethod
    def purge_expired(self) -> int:
        """Remove expired challenges.

        Returns:
            Number of challenges removed.
        """
        ...


class MemoryChallengeStore(ChallengeStore):
    """In-memory challenge store.

    Suitable for development and single-process deployments.
    Challenges are lost on restart.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_CHALLENGE_TTL_SECONDS, clock: Clock = utcnow) -> None:
        super().__init__(ttl_seconds, clock)
        self._challenges: dict[str, Challenge] = {}
        self._lock = threading.Lock()

    def _insert(self, challenge: Challenge) -> None:
        with self._lock:
            self._challenges[challenge.nonce] = challenge

    def _take(self, nonce: str) -> Challenge | None:
        with self._lock:
            return self._challenges.pop(nonce, None)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [n for n, c in self._challenges.items() if c.is_expired(now)]
            for nonce in expired:
                del self._challenges[nonce]
        return len(expired)

    def __contains__(self, nonce: str) -> bool:
        """Support 'nonce in store' syntax for convenience."""
        return nonce in self._challenges

    def __len__(self) -> int:
        return len(self._challenges)


class PostgresChallengeStore(ChallengeStore):
    """PostgreSQL-backed challenge store.

    ``DELETE ... RETURNING`` removes and reads the row in one statement,
    which is what makes consumption single-winner across processes.
    """

    def _insert(self, challenge: Challenge) -> None:
        from ..core.db import get_cursor

        with get_cursor() as cur:
            cur.execute(
                "INSERT INTO challenges (nonce, pubkey_b64, expires_at) VALUES (%s, %s, %s)",
                (challenge.nonce, challenge.pubkey_b64, challenge.expires_at),
            )

    def _take(self, nonce: str) -> Challenge | None:
        from ..core.db import get_cursor

        with get_cursor() as cur:
            cur.execute(
                "DELETE FROM challenges WHERE nonce = %s RETURNING nonce, pubkey_b64, expires_at",
                (nonce,),
            )
            row = cur.fetchone()
        if row is None:
            return None
        return Challenge(nonce=row["nonce"], pubkey_b64=row["pubkey_b64"], expires_at=row["expires_at"])

    def purge_expired(self) -> int:
        from ..core.db import get_cursor

        with get_cursor() as cur:
            cur.execute("DELETE FROM challenges WHERE expires_at < %s", (self._clock(),))
            return cur.rowcount


class RedisChallengeStore(ChallengeStore):
    """Redis-backed challenge store.

    Uses key TTLs for expiry and GETDEL (Redis >= 6.2) for the atomic
    take. Requires redis-py: ``pip install hushnet-registry[redis]``
    """

    def __init__(
        self,
        redis_url: str | None = None,
        ttl_seconds: int = DEFAULT_CHALLENGE_TTL_SECONDS,
        clock: Clock = utcnow,
    ) -> None:
        import redis

        super().__init__(ttl_seconds, clock)
        from ..core.config import get_config

        url = redis_url or get_config().redis_url
        self._client = redis.Redis.from_url(url, decode_responses=True)
        try:
            self._client.ping()
        except redis.ConnectionError:
            logger.warning("Redis connection failed at init, will retry on use")

    def _key(self, nonce: str) -> str:
        return f"{_REDIS_KEY_PREFIX}{nonce}"

    def _insert(self, challenge: Challenge) -> None:
        data = json.dumps(
            {
                "pubkey_b64": challenge.pubkey_b64,
                "expires_at": challenge.expires_at.isoformat(),
            }
        )
        # Keep the key a little past expiry so late attempts read as expired, not unknown
        ttl_seconds = max(1, int((challenge.expires_at - self._clock()).total_seconds()) + 60)
        self._client.set(self._key(challenge.nonce), data, ex=ttl_seconds, nx=True)

    def _take(self, nonce: str) -> Challenge | None:
        raw = self._client.getdel(self._key(nonce))
        if raw is None:
            return None
        data = json.loads(raw)
        return Challenge(
            nonce=nonce,
            pubkey_b64=data["pubkey_b64"],
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )

    def purge_expired(self) -> int:
        # Redis TTL removes keys on its own
        return 0


# =============================================================================
# FACTORY
# =============================================================================

_store_instance: ChallengeStore | None = None


def get_challenge_store() -> ChallengeStore:
    """Get or create the global challenge store.

    Reads HUSHNET_CHALLENGE_STORE:
        - "postgres" (default): challenges table
        - "memory": in-process store
        - "redis": Redis-backed store
    """
    global _store_instance
    if _store_instance is not None:
        return _store_instance

    from ..core.config import get_config

    config = get_config()
    backend = config.challenge_store.lower()
    ttl = config.challenge_ttl_seconds

    if backend == "postgres":
        logger.info("Using PostgreSQL challenge store")
        _store_instance = PostgresChallengeStore(ttl_seconds=ttl)
    elif backend == "memory":
        logger.info("Using in-memory challenge store")
        _store_instance = MemoryChallengeStore(ttl_seconds=ttl)
    elif backend == "redis":
        logger.info("Using Redis challenge store")
        _store_instance = RedisChallengeStore(ttl_seconds=ttl)
    else:
        raise ConfigException(f"Unknown challenge store backend '{backend}'")

    return _store_instance


def reset_challenge_store() -> None:
    """Reset the global store instance (for testing)."""
    global _store_instance
    _store_instance = None
