"""
Per-second refresh of the codes shown on the dashboard.

Each tick recomputes the countdown for every account, but only recomputes
the codes themselves when a new 30-second window has started or the set of
tracked accounts changed. A tick publishes one complete, immutable snapshot
to every subscriber.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from core import base32
from core.errors import InvalidSecret
from core.totp import code_for_secret, generate_totp, remaining_seconds, time_step

logger = logging.getLogger(__name__)

ERROR_TEXT = "Error"
_MAX_WORKERS = 8


@dataclass(frozen=True)
class GeneratedCode:
    """A displayed code. ``code`` is None when the secret does not decode."""

    code: Optional[str]
    seconds_remaining: int

    @property
    def is_error(self) -> bool:
        return self.code is None

    @property
    def display(self) -> str:
        return ERROR_TEXT if self.code is None else self.code


Snapshot = Mapping[str, GeneratedCode]
Subscriber = Callable[[Snapshot], None]


def _compute(secret: str, timestamp: float) -> Optional[str]:
    try:
        return generate_totp(base32.decode(secret), timestamp)
    except InvalidSecret:
        return None


class RefreshScheduler:
    """
    Drives code generation for a set of accounts.

    Accounts are any objects with ``id`` and ``secret`` attributes. The
    scheduler can be ticked manually (:meth:`tick`) or run on its own
    background thread (:meth:`start` / :meth:`stop`).

    Usage::

        scheduler = RefreshScheduler(store.list())
        store.subscribe(scheduler.set_accounts)
        scheduler.subscribe(render)
        scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        accounts: Sequence = (),
        clock: Callable[[], float] = time.time,
        interval: float = 1.0,
        parallel_threshold: int = 16,
    ) -> None:
        self._clock = clock
        self._interval = interval
        self._parallel_threshold = parallel_threshold
        self._accounts: Tuple = tuple(accounts)
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

        self._codes: Dict[str, Optional[str]] = {}
        self._last_step: Optional[int] = None
        self._last_fingerprint: Optional[FrozenSet[Tuple[str, str]]] = None
        self._snapshot: Snapshot = MappingProxyType({})
        self.full_computations = 0

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ── Accounts & subscribers ───────────────────────────────────────────

    def set_accounts(self, accounts: Sequence) -> None:
        """Replace the tracked accounts; the next tick recomputes if they differ."""
        self._accounts = tuple(accounts)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a snapshot callback; returns an unsubscribe callable."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    @property
    def snapshot(self) -> Snapshot:
        """The last published state."""
        return self._snapshot

    # ── Ticking ──────────────────────────────────────────────────────────

    def tick(self, now: Optional[float] = None) -> Snapshot:
        """Run one refresh cycle and publish the resulting snapshot."""
        timestamp = self._clock() if now is None else now
        remaining = remaining_seconds(timestamp)
        step = time_step(timestamp)
        accounts = self._accounts
        fingerprint = frozenset((a.id, a.secret) for a in accounts)

        with self._lock:
            if step != self._last_step or fingerprint != self._last_fingerprint:
                self._codes = self._compute_all(accounts, timestamp)
                self._last_step = step
                self._last_fingerprint = fingerprint
                self.full_computations += 1

            state = {}
            for account in accounts:
                code = self._codes.get(account.id)
                state[account.id] = GeneratedCode(code, remaining if code is not None else 0)
            snapshot: Snapshot = MappingProxyType(state)
            self._snapshot = snapshot

        self._publish(snapshot)
        return snapshot

    def _compute_all(self, accounts: Tuple, timestamp: float) -> Dict[str, Optional[str]]:
        secrets = [a.secret for a in accounts]
        if len(accounts) > self._parallel_threshold:
            workers = min(_MAX_WORKERS, len(accounts))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(lambda s: _compute(s, timestamp), secrets))
        else:
            results = [_compute(s, timestamp) for s in secrets]

        for account, code in zip(accounts, results):
            if code is None:
                logger.warning("Account %s has an invalid secret", account.id)
        return {a.id: code for a, code in zip(accounts, results)}

    def _publish(self, snapshot: Snapshot) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(snapshot)
            except Exception:
                logger.exception("Refresh subscriber %r failed", subscriber)

    # ── Background thread ────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Tick now, then once per interval on a daemon thread."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="refresh-scheduler", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        """Stop ticking. Safe to call more than once."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Refresh tick failed")
            # wake up on the next wall-clock boundary
            delay = self._interval - (self._clock() % self._interval)
            if self._stop_event.wait(delay or self._interval):
                break


class InstantCode:
    """
    Code for a secret typed in by hand, outside the account list.

    :meth:`poll` recomputes the code when the secret changes or a new time
    step has begun since the last computation, so a missed boundary second
    never leaves a stale code behind. The countdown is refreshed on every
    poll.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._secret = ""
        self._step: Optional[int] = None
        self._code: Optional[str] = None
        self.computations = 0

    def set_secret(self, secret: str) -> None:
        if secret != self._secret:
            self._secret = secret
            self._step = None

    def poll(self, now: Optional[float] = None) -> Optional[GeneratedCode]:
        """Return the current code, or None while no secret is entered."""
        if not self._secret.strip():
            return None
        timestamp = self._clock() if now is None else now
        step = time_step(timestamp)
        if step != self._step:
            try:
                self._code = code_for_secret(self._secret, timestamp)
            except InvalidSecret:
                self._code = None
            self._step = step
            self.computations += 1
        remaining = remaining_seconds(timestamp) if self._code is not None else 0
        return GeneratedCode(self._code, remaining)
