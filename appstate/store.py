"""Application store: process-wide keyed state with change notification.

Holds named top-level slices (accounts, bots, current backtest, ...).
Values are read with get(), replaced with set() and observed with
subscribe(). Nothing outside this module mutates committed state: get()
hands out deep copies and nested writes are applied copy-on-write.

ISOLATION: This module does NOT import botdesk or any UI module.
"""

import copy
import logging
import os
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

Path = Tuple[str, ...]
PathLike = Union[str, Tuple[str, ...], List[str]]
Callback = Callable[[Any], None]

PERMISSIVE_ENV_VAR = "BOTDESK_PERMISSIVE_STORE"

DEFAULT_STATE: Dict[str, Any] = {
    "authenticatedId": "testAccount",
    "accounts": {
        "testAccount": {"id": "testAccount"},
    },
    "deployments": {},
    "bots": {},
    "candles": {},
    "currentBackTesting": None,
    "exchangeAccounts": {},
    "botVersions": {},
}


class UnknownSliceError(KeyError):
    """Raised in strict mode when a path names a slice the store does not hold."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown store slice '{self.name}'"


class StorePathError(ValueError):
    """Raised when a nested write goes through a value that is not a mapping."""


def normalize_path(path: PathLike) -> Path:
    """'a.b' / ('a', 'b') / ['a', 'b'] -> ('a', 'b')."""
    if isinstance(path, str):
        parts = tuple(path.split("."))
    else:
        parts = tuple(path)
    if not parts or any(not isinstance(p, str) or not p for p in parts):
        raise StorePathError(f"Invalid store path: {path!r}")
    return parts


def _paths_overlap(a: Path, b: Path) -> bool:
    """True if one path is a prefix of the other (ancestor, descendant or equal)."""
    n = min(len(a), len(b))
    return a[:n] == b[:n]


def _read_path(root: Dict[str, Any], path: Path) -> Any:
    node: Any = root
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _write_path(node: Any, path: Path, value: Any) -> Dict[str, Any]:
    """Return a copy of node with value placed at path. node is left untouched."""
    if node is None:
        node = {}
    if not isinstance(node, dict):
        raise StorePathError(
            f"Cannot write '{path[0]}' into a {type(node).__name__} value")
    out = dict(node)
    if len(path) == 1:
        out[path[0]] = value
    else:
        out[path[0]] = _write_path(node.get(path[0]), path[1:], value)
    return out


class Subscription:
    """Handle returned by Store.subscribe(). unsubscribe() is idempotent."""

    def __init__(self, store: "Store", path: Path, callback: Callback) -> None:
        self.path = path
        self.callback = callback
        self._store = store
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._store._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        state = "active" if self.active else "disposed"
        return f"<Subscription {'.'.join(self.path)} {state}>"


class Store:
    """Keyed reactive container.

    Unknown slice policy is fixed per instance: strict (default) raises
    UnknownSliceError for any path whose first segment is not a registered
    slice; permissive creates the slice on first write and reads it as None.
    """

    def __init__(self, defaults: Optional[Dict[str, Any]] = None,
                 permissive: bool = False) -> None:
        self._defaults = copy.deepcopy(DEFAULT_STATE if defaults is None else defaults)
        self.permissive = permissive
        self._lock = threading.RLock()
        self._state: Dict[str, Any] = copy.deepcopy(self._defaults)
        self._subscriptions: List[Subscription] = []
        self._pending: Deque[Tuple[Path, Dict[str, Any]]] = deque()
        self._notifying = False
        self._commits = 0

    # -- reads ------------------------------------------------------------

    def get(self, path: PathLike) -> Any:
        """Return a copy of the committed value at path."""
        parts = normalize_path(path)
        with self._lock:
            self._check_slice(parts[0])
            return copy.deepcopy(_read_path(self._state, parts))

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._state)

    def slice_names(self) -> List[str]:
        with self._lock:
            return list(self._state)

    # -- writes -----------------------------------------------------------

    def set(self, path: PathLike, updater: Any) -> Any:
        """Commit a new value at path and notify overlapping subscribers.

        updater is either the replacement value or a function old -> new.
        The function receives a copy, so in-place edits to its argument
        never leak into committed state. Returns the committed value.
        """
        parts = normalize_path(path)
        with self._lock:
            if parts[0] not in self._state:
                if not self.permissive:
                    raise UnknownSliceError(parts[0])
                logger.debug("Creating store slice '%s'", parts[0])

            if callable(updater):
                new_value = updater(copy.deepcopy(_read_path(self._state, parts)))
            else:
                new_value = updater
            new_value = copy.deepcopy(new_value)

            if len(parts) == 1:
                next_state = dict(self._state)
                next_state[parts[0]] = new_value
            else:
                next_state = _write_path(self._state, parts, new_value)

            self._state = next_state
            self._commits += 1
            logger.debug("Store commit #%d at %s", self._commits, ".".join(parts))

            # Committed states are never mutated in place, so each queued
            # notification can carry the state as of its own commit.
            self._pending.append((parts, next_state))
            if not self._notifying:
                self._drain()
            return copy.deepcopy(new_value)

    def reset(self) -> None:
        """Restore the seeded defaults and drop every subscription."""
        with self._lock:
            for sub in self._subscriptions:
                sub.active = False
            self._subscriptions = []
            self._pending.clear()
            self._state = copy.deepcopy(self._defaults)
            self._commits = 0

    # -- subscriptions ----------------------------------------------------

    def subscribe(self, path: PathLike, callback: Callback) -> Subscription:
        """Call callback(value_at_path) after each committed change overlapping path."""
        parts = normalize_path(path)
        with self._lock:
            self._check_slice(parts[0])
            sub = Subscription(self, parts, callback)
            self._subscriptions.append(sub)
            return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            try:
                self._subscriptions.remove(sub)
            except ValueError:
                pass

    def _check_slice(self, name: str) -> None:
        if name not in self._state and not self.permissive:
            raise UnknownSliceError(name)

    def _drain(self) -> None:
        self._notifying = True
        try:
            while self._pending:
                changed, state = self._pending.popleft()
                targets = [s for s in self._subscriptions
                           if _paths_overlap(s.path, changed)]
                for sub in targets:
                    # May have been disposed by an earlier callback this round.
                    if not sub.active:
                        continue
                    value = copy.deepcopy(_read_path(state, sub.path))
                    try:
                        sub.callback(value)
                    except Exception:
                        logger.exception(
                            "Store subscriber for %s failed", ".".join(sub.path))
        finally:
            self._notifying = False


def create_store(environ: Optional[Dict[str, str]] = None) -> Store:
    """Build a seeded store, taking the unknown-slice policy from the environment."""
    env = os.environ if environ is None else environ
    return Store(permissive=env.get(PERMISSIVE_ENV_VAR, "0") == "1")


# Process singleton. Seeded once at import, lives for the process.
store = create_store()
