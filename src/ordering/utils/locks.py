"""Named locks that serialize critical sections across requests.

The Unit of Work gives each workflow atomicity, but two requests can still
read the same stock level or the same "last order number" before either
commits. Workflows hold the relevant named locks around the whole command,
including its commit:

- ``LocalLockManager`` guards a single process (development, tests).
- ``RedisLockManager`` guards every worker sharing one Redis instance.

Keys are always acquired in sorted order so that two workflows needing
overlapping keys cannot deadlock.
"""

import threading
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

import redis
import structlog
from protean.utils.globals import current_domain
from redis.exceptions import RedisError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0

# Compare-and-delete: only the holder's token may release the key
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockTimeoutError(Exception):
    """A named lock could not be acquired within the timeout."""

    def __init__(self, key: str, timeout: float) -> None:
        super().__init__(f"Timed out after {timeout}s waiting for lock '{key}'")
        self.key = key
        self.timeout = timeout


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(RedisError),
    )


class LockManager(ABC):
    """Acquire a set of named locks for the duration of a block."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.timeout = timeout

    @abstractmethod
    def _acquire(self, key: str) -> object:
        """Block until ``key`` is held; return a handle for ``_release``."""
        ...

    @abstractmethod
    def _release(self, key: str, handle: object) -> None: ...

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[None]:
        ordered = sorted(set(keys))
        acquired: list[tuple[str, object]] = []
        try:
            for key in ordered:
                acquired.append((key, self._acquire(key)))
            yield
        finally:
            for key, handle in reversed(acquired):
                self._release(key, handle)


class LocalLockManager(LockManager):
    """Process-local locks backed by ``threading.Lock``."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        super().__init__(timeout)
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    def _acquire(self, key: str) -> object:
        lock = self._lock_for(key)
        if not lock.acquire(timeout=self.timeout):
            raise LockTimeoutError(key, self.timeout)
        return lock

    def _release(self, key: str, handle: object) -> None:
        handle.release()


class RedisLockManager(LockManager):
    """Distributed locks: ``SET key token NX PX ttl`` plus a compare-and-delete release.

    The TTL bounds how long a crashed worker can block others.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        ttl_ms: int = 30_000,
        poll_interval: float = 0.05,
        namespace: str = "ordering:lock:",
        client: redis.Redis | None = None,
    ) -> None:
        super().__init__(timeout)
        self.redis = client or redis.Redis.from_url(url, decode_responses=True)
        self.ttl_ms = ttl_ms
        self.poll_interval = poll_interval
        self.namespace = namespace

    @redis_retry()
    def _try_set(self, name: str, token: str) -> bool:
        return bool(self.redis.set(name=name, value=token, nx=True, px=self.ttl_ms))

    @redis_retry()
    def _delete_if_owner(self, name: str, token: str) -> bool:
        return bool(self.redis.eval(_RELEASE_LUA, 1, name, token))

    def _acquire(self, key: str) -> object:
        name = f"{self.namespace}{key}"
        token = uuid.uuid4().hex
        deadline = time.monotonic() + self.timeout
        while not self._try_set(name, token):
            if time.monotonic() >= deadline:
                raise LockTimeoutError(key, self.timeout)
            time.sleep(self.poll_interval)
        return token

    def _release(self, key: str, handle: object) -> None:
        name = f"{self.namespace}{key}"
        if not self._delete_if_owner(name, handle):
            logger.warning("Lock expired before release", key=key, ttl_ms=self.ttl_ms)


_current_lock_manager: LockManager | None = None


def build_lock_manager(domain) -> LockManager:
    """Build the lock manager selected by the domain's custom config."""
    backend = getattr(domain, "LOCK_BACKEND", "local")
    timeout = float(getattr(domain, "LOCK_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
    if backend == "redis":
        return RedisLockManager(url=domain.REDIS_URL, timeout=timeout)
    return LocalLockManager(timeout=timeout)


def get_lock_manager() -> LockManager:
    """Return the active lock manager. Defaults to process-local locks."""
    global _current_lock_manager
    if _current_lock_manager is None:
        _current_lock_manager = LocalLockManager()
    return _current_lock_manager


def set_lock_manager(manager: LockManager) -> None:
    global _current_lock_manager
    _current_lock_manager = manager


def reset_lock_manager() -> None:
    global _current_lock_manager
    _current_lock_manager = None


def cart_key(user_id) -> str:
    return f"cart:{user_id}"


def product_key(product_id) -> str:
    return f"product:{product_id}"


def order_key(order_id) -> str:
    return f"order:{order_id}"


def process_exclusively(command, keys: Iterable[str]):
    """Process ``command`` synchronously while holding every lock in ``keys``.

    The locks are released only after the command's Unit of Work commits.
    """
    with get_lock_manager().hold(keys):
        return current_domain.process(command, asynchronous=False)
