#!/usr/bin/env python3
"""
interaction_store.py — Ordered, freezable collection of recorded interactions.

Place at: cdc/services/interaction_store.py

What this does:
  - record(interaction) appends an interaction, rejecting duplicate
    (provider_state, description) pairs and any recording after freeze().
  - find_matching_stub(request) picks the interaction whose request pattern
    matches an incoming request; when several match, the most recently
    recorded one wins and the ambiguity is logged as a warning.
  - all_interactions() returns interactions in recording order so artifacts
    are written deterministically.

Notes:
  - After freeze() the store only serves reads from an immutable tuple, so
    concurrent lookups from the stub server need no locking.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from cdc.core.errors import DuplicateInteraction, StoreFrozen
from cdc.schemas import CapturedRequest, ContractArtifact, Interaction
from cdc.services.matcher import match_request

log = logging.getLogger(__name__)


class InteractionStore:
    def __init__(self, interactions: Iterable[Interaction] = ()):
        self._lock = threading.Lock()
        self._items: List[Interaction] = []
        self._index: Dict[Tuple[str, str], Interaction] = {}
        self._snapshot: Optional[Tuple[Interaction, ...]] = None
        for interaction in interactions:
            self.record(interaction)

    @classmethod
    def from_artifact(cls, artifact: ContractArtifact) -> "InteractionStore":
        return cls(artifact.interactions)

    # ---------- recording ----------

    def record(self, interaction: Interaction) -> None:
        with self._lock:
            if self._snapshot is not None:
                raise StoreFrozen(interaction.description)
            if interaction.key in self._index:
                raise DuplicateInteraction(interaction.provider_state, interaction.description)
            self._items.append(interaction)
            self._index[interaction.key] = interaction

    def freeze(self) -> None:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = tuple(self._items)

    @property
    def frozen(self) -> bool:
        return self._snapshot is not None

    # ---------- reading ----------

    def all_interactions(self) -> List[Interaction]:
        if self._snapshot is not None:
            return list(self._snapshot)
        with self._lock:
            return list(self._items)

    def get(self, provider_state: str, description: str) -> Optional[Interaction]:
        return self._index.get((provider_state, description))

    def find_matching_stub(self, request: CapturedRequest) -> Optional[Interaction]:
        candidates = [i for i in self.all_interactions() if match_request(i.request, request) is None]
        if not candidates:
            return None
        chosen = candidates[-1]
        if len(candidates) > 1:
            log.warning(
                "ambiguous stub match, using most recently recorded interaction",
                extra={"extra": {
                    "method": request.method,
                    "path": request.path,
                    "candidates": [c.description for c in candidates],
                    "chosen": chosen.description,
                }},
            )
        return chosen

    def to_artifact(self, consumer: str, provider: str) -> ContractArtifact:
        return ContractArtifact(consumer=consumer, provider=provider, interactions=self.all_interactions())

    # ---------- dunder ----------

    def __len__(self) -> int:
        return len(self.all_interactions())

    def __iter__(self) -> Iterator[Interaction]:
        return iter(self.all_interactions())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InteractionStore):
            return NotImplemented
        return self.all_interactions() == other.all_interactions()
