"""Event relevance filter for Ingress watch events.

Only spec changes (generation bumps), the start of deletion, and changes to
user-facing ``pangolin.ingress.k8s.io/*`` annotations trigger a reconcile.
The resource-id annotation is excluded because the operator writes it itself,
and reacting to it would loop.
"""

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from constants import ANNOTATION_PREFIX, ANNOTATION_RESOURCE_ID


def _watched(annotations: Mapping[str, str] | None) -> dict[str, str]:
    return {
        key: value
        for key, value in (annotations or {}).items()
        if key.startswith(ANNOTATION_PREFIX) and key != ANNOTATION_RESOURCE_ID
    }


def annotations_changed(
    old: Mapping[str, str] | None, new: Mapping[str, str] | None
) -> bool:
    """True if a watched annotation was added, removed or changed."""
    return _watched(old) != _watched(new)


def needs_reconcile(old: Mapping[str, Any], new: Mapping[str, Any]) -> bool:
    """Compare two metadata dicts of the same Ingress."""
    if old.get("generation") != new.get("generation"):
        return True
    if new.get("deletionTimestamp") and not old.get("deletionTimestamp"):
        return True
    return annotations_changed(old.get("annotations"), new.get("annotations"))


@dataclass
class AdmissionTracker:
    """Remembers the last admitted metadata per Ingress key.

    Watch events carry only the new object, so the previous state needed by
    ``needs_reconcile`` is kept here.
    """

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _seen: dict[str, dict[str, Any]] = field(default_factory=dict, repr=False)

    def admit(self, key: str, meta: Mapping[str, Any]) -> bool:
        """Record the metadata and return True if the key should be queued."""
        snapshot = {
            "generation": meta.get("generation"),
            "deletionTimestamp": meta.get("deletionTimestamp"),
            "annotations": _watched(meta.get("annotations")),
        }
        with self._lock:
            previous = self._seen.get(key)
            if previous is not None and not needs_reconcile(previous, snapshot):
                return False
            self._seen[key] = snapshot
            return True

    def forget(self, key: str) -> None:
        with self._lock:
            self._seen.pop(key, None)
