"""
In-memory store for pending confirmations.

Each token maps to a payload and an expiry time. Tokens are single use:
consume and reject remove the entry under the same lock that checks it,
so two concurrent confirmations of one token cannot both succeed.
Expired entries are swept on every create, consume and reject.
"""

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Generic, Optional, TypeVar
import structlog

from exceptions import ConfirmationNotFoundError

logger = structlog.get_logger(__name__)

DEFAULT_TTL_MINUTES = 10

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConfirmationStore(Generic[T]):
    """
    Time-boxed single-use token map.

    Args:
        kind: Human-readable name used in errors and logs
        ttl_minutes: Lifetime of each token
        clock: Returns the current time (injectable for tests)
    """

    def __init__(
        self,
        kind: str = "Confirmation",
        ttl_minutes: int = DEFAULT_TTL_MINUTES,
        clock: Callable[[], datetime] = utc_now
    ):
        self.kind = kind
        self.ttl = timedelta(minutes=ttl_minutes)
        self._clock = clock
        self._entries: dict[str, tuple[datetime, T]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._cleanup_expired(self._clock())
            return len(self._entries)

    def create(self, payload: T) -> tuple[str, datetime]:
        """Store payload, return (token, expires_at)."""
        token = str(uuid.uuid4())
        with self._lock:
            now = self._clock()
            self._cleanup_expired(now)
            expires_at = now + self.ttl
            self._entries[token] = (expires_at, payload)

        logger.info("confirmation_created", kind=self.kind, token=token, expires_at=expires_at.isoformat())
        return token, expires_at

    def consume(self, token: str, check: Optional[Callable[[T], None]] = None) -> T:
        """
        Atomically take the payload for a token.

        Args:
            token: Token returned by create()
            check: Optional validation run on the payload before removal.
                If it raises, the token stays pending and the error propagates.

        Returns:
            The stored payload

        Raises:
            ConfirmationNotFoundError: Unknown, already used, or expired token
        """
        with self._lock:
            self._cleanup_expired(self._clock())
            entry = self._entries.get(token)
            if entry is None:
                logger.info("confirmation_not_found", kind=self.kind, token=token)
                raise ConfirmationNotFoundError(token, self.kind)
            if check is not None:
                check(entry[1])
            del self._entries[token]

        logger.info("confirmation_consumed", kind=self.kind, token=token)
        return entry[1]

    def reject(self, token: str) -> None:
        """
        Discard a pending token without applying it.

        Raises:
            ConfirmationNotFoundError: Unknown, already used, or expired token
        """
        with self._lock:
            self._cleanup_expired(self._clock())
            if self._entries.pop(token, None) is None:
                logger.info("confirmation_not_found", kind=self.kind, token=token)
                raise ConfirmationNotFoundError(token, self.kind)

        logger.info("confirmation_rejected", kind=self.kind, token=token)

    def _cleanup_expired(self, now: datetime) -> None:
        """Remove all expired entries. Caller holds the lock."""
        expired = [k for k, (exp, _) in self._entries.items() if exp <= now]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("confirmations_expired", kind=self.kind, count=len(expired))
