"""
Subscriber references and liveness checks.

Purpose
-------
A subscription must never keep its subscriber alive. `SubscriberReference`
wraps the subscriber in a weak reference and answers "may this subscriber
still be invoked?" by combining three signals:

- the referent has not been reclaimed by the garbage collector;
- the reference has not been explicitly invalidated by its owner;
- for host-managed kinds, the host's liveness predicate says the object has
  not been torn down (an object can be destroyed by its framework while
  Python still holds it).

`LivenessPolicy` holds the host predicates, keyed by class. The predicate
for a subscriber is resolved once, when its reference is created.
"""

from __future__ import annotations

import threading
import weakref
from typing import Any, Dict, Optional, Type

from eventhub.core.event.types import LivenessPredicate
from eventhub.core.logging.logger import get_logger

logger = get_logger(__name__)


class LivenessPolicy:
    """
    Registry of host-supplied liveness predicates per subscriber kind.

    Examples
    --------
    >>> policy = LivenessPolicy()
    >>> policy.register(SceneNode, lambda node: not node.destroyed)
    >>> policy.predicate_for(PlayerNode)  # PlayerNode subclasses SceneNode
    <function <lambda> ...>
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._predicates: Dict[Type[Any], LivenessPredicate] = {}

    def register(self, kind: Type[Any], predicate: LivenessPredicate) -> None:
        if not isinstance(kind, type):
            raise TypeError(f"kind must be a class, got {kind!r}")
        if not callable(predicate):
            raise TypeError("predicate must be callable")
        with self._lock:
            self._predicates[kind] = predicate

    def unregister(self, kind: Type[Any]) -> bool:
        with self._lock:
            return self._predicates.pop(kind, None) is not None

    def predicate_for(self, kind: Type[Any]) -> Optional[LivenessPredicate]:
        """Most specific predicate registered for `kind` or one of its bases."""
        with self._lock:
            if not self._predicates:
                return None
            for base in kind.__mro__:
                predicate = self._predicates.get(base)
                if predicate is not None:
                    return predicate
        return None


class SubscriberReference:
    """
    Non-owning handle to a subscriber plus cached type metadata.

    Objects that cannot be weakly referenced (for instance instances of a
    class whose `__slots__` omit `__weakref__`) are held strongly; they stop
    being live only through `invalidate()` or a host predicate.
    """

    __slots__ = (
        "_ref",
        "_strong",
        "_invalidated",
        "_predicate",
        "target_type",
        "target_name",
        "target_id",
        "is_weak",
        "__weakref__",
    )

    def __init__(self, target: Any, policy: Optional[LivenessPolicy] = None) -> None:
        if target is None:
            raise ValueError("target cannot be None")

        self.target_type: Type[Any] = type(target)
        self.target_name: str = self.target_type.__name__
        self.target_id: int = id(target)
        self._invalidated = False
        self._predicate: Optional[LivenessPredicate] = (
            policy.predicate_for(self.target_type) if policy is not None else None
        )

        try:
            self._ref: Optional[weakref.ref] = weakref.ref(target)
            self._strong: Any = None
            self.is_weak = True
        except TypeError:
            self._ref = None
            self._strong = target
            self.is_weak = False
            logger.debug(
                "Subscriber does not support weak references; holding it strongly",
                extra={"subscriber_type": self.target_name},
            )

    def _referent(self) -> Any:
        if self._ref is not None:
            return self._ref()
        return self._strong

    def is_live(self) -> bool:
        """True iff the subscriber may still be invoked."""
        return self.resolve() is not None

    def resolve(self) -> Any:
        """Return the subscriber if live, otherwise None (absent)."""
        if self._invalidated:
            return None

        target = self._referent()
        if target is None:
            return None

        if self._predicate is not None:
            try:
                alive = bool(self._predicate(target))
            except Exception as exc:
                logger.warning(
                    "Liveness predicate failed; treating subscriber as dead",
                    extra={
                        "subscriber_type": self.target_name,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                return None
            if not alive:
                return None

        return target

    def invalidate(self) -> None:
        """Mark the subscriber as no longer registered. Irreversible."""
        self._invalidated = True
        self._strong = None

    def refers_to(self, target: Any) -> bool:
        """Identity check that still answers for dead or invalidated references."""
        if target is None:
            return False
        if id(target) != self.target_id:
            return False
        return self._referent() is target

    def __repr__(self) -> str:
        state = "live" if self.is_live() else "dead"
        return f"<SubscriberReference {self.target_name}@{self.target_id:#x} {state}>"
