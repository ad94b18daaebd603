"""Versioned playbook store for ACE heuristics."""

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .models import ANALYZER_NAMES, Bullet
from ace_fraud.errors import PlaybookConflictError, PlaybookFrozenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaybookSnapshot:
    """Immutable view of the playbook at one version."""
    version: int
    bullets: Tuple[Bullet, ...] = ()

    @property
    def size(self) -> int:
        return sum(1 for b in self.bullets if b.active)


@dataclass
class PlaybookUpdate:
    """
    A pending change computed against one snapshot.

    Applied atomically by PlaybookStore.apply; rejected if the store has
    moved past base_version.
    """
    base_version: int
    outcomes: List[Tuple[str, bool]] = field(default_factory=list)
    new_bullets: List[Bullet] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.outcomes and not self.new_bullets


class PlaybookStore:
    """
    Owned, versioned collection of playbook bullets.

    Readers take a snapshot; writers go through a compare-and-swap step
    serialized by a lock, so at most one mutation is in flight and a
    snapshot is never observed half-updated.
    """

    def __init__(
        self,
        bullets: Optional[Iterable[Bullet]] = None,
        frozen: bool = False,
        prune_min_evaluations: int = 5,
        prune_success_threshold: float = 0.3,
        max_bullets_per_node: int = 25,
    ):
        self._bullets: List[Bullet] = list(bullets or [])
        self._frozen = frozen
        self._version = 0
        self._lock = threading.Lock()
        self.prune_min_evaluations = prune_min_evaluations
        self.prune_success_threshold = prune_success_threshold
        self.max_bullets_per_node = max_bullets_per_node

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    @property
    def size(self) -> int:
        """Number of active bullets."""
        return self.snapshot().size

    def snapshot(self) -> PlaybookSnapshot:
        with self._lock:
            return PlaybookSnapshot(version=self._version, bullets=tuple(self._bullets))

    def get_bullet(self, bullet_id: str) -> Optional[Bullet]:
        with self._lock:
            for bullet in self._bullets:
                if bullet.id == bullet_id:
                    return bullet
        return None

    def bullets_by_node(self, include_retired: bool = False) -> Dict[str, List[Bullet]]:
        """Group bullets by owning analyzer; every analyzer key is present."""
        grouped: Dict[str, List[Bullet]] = {name: [] for name in ANALYZER_NAMES}
        for bullet in self.snapshot().bullets:
            if bullet.active or include_retired:
                grouped.setdefault(bullet.node, []).append(bullet)
        return grouped

    def apply(self, update: PlaybookUpdate) -> PlaybookSnapshot:
        """Apply an update computed against update.base_version."""
        with self._lock:
            self._check_writable()
            if update.base_version != self._version:
                raise PlaybookConflictError(update.base_version, self._version)

            for bullet_id, helpful in update.outcomes:
                self._record_outcome_locked(bullet_id, helpful)

            added = 0
            signatures = {b.signature() for b in self._bullets if b.active}
            for bullet in update.new_bullets:
                if bullet.signature() in signatures:
                    continue
                self._bullets.append(bullet)
                signatures.add(bullet.signature())
                added += 1

            retired = self._prune_locked()
            self._version += 1

            if added or retired:
                logger.info(
                    "Playbook v%d: %d outcomes, %d bullets added, %d retired, %d active",
                    self._version, len(update.outcomes), added, retired,
                    sum(1 for b in self._bullets if b.active),
                )
            return PlaybookSnapshot(version=self._version, bullets=tuple(self._bullets))

    def add_bullet(self, bullet: Bullet) -> PlaybookSnapshot:
        return self.apply(PlaybookUpdate(base_version=self.version, new_bullets=[bullet]))

    def record_outcome(self, bullet_id: str, helpful: bool) -> PlaybookSnapshot:
        return self.apply(PlaybookUpdate(base_version=self.version, outcomes=[(bullet_id, helpful)]))

    def retire(self, bullet_id: str) -> PlaybookSnapshot:
        with self._lock:
            self._check_writable()
            index = self._index_locked(bullet_id)
            self._bullets[index] = self._bullets[index].model_copy(update={"active": False})
            self._version += 1
            logger.info("Retired bullet %s", bullet_id)
            return PlaybookSnapshot(version=self._version, bullets=tuple(self._bullets))

    def copy(self, frozen: Optional[bool] = None) -> "PlaybookStore":
        """Independent store holding the same bullets, starting at version 0."""
        return PlaybookStore(
            self.snapshot().bullets,
            frozen=self._frozen if frozen is None else frozen,
            prune_min_evaluations=self.prune_min_evaluations,
            prune_success_threshold=self.prune_success_threshold,
            max_bullets_per_node=self.max_bullets_per_node,
        )

    def save(self, path: Union[str, Path]) -> None:
        snapshot = self.snapshot()
        payload = {
            "version": snapshot.version,
            "bullets": [b.model_dump(mode="json") for b in snapshot.bullets],
        }
        Path(path).write_text(json.dumps(payload, indent=2))

    @classmethod
    def load(cls, path: Union[str, Path], frozen: bool = False, **kwargs) -> "PlaybookStore":
        """Load bullets from a JSON file (an object with "bullets" or a bare list)."""
        data = json.loads(Path(path).read_text())
        records = data.get("bullets", []) if isinstance(data, dict) else data
        bullets = [Bullet.model_validate(record) for record in records]
        logger.info("Loaded %d playbook bullets from %s", len(bullets), path)
        return cls(bullets, frozen=frozen, **kwargs)

    def _check_writable(self) -> None:
        if self._frozen:
            raise PlaybookFrozenError("Offline playbook is frozen for the session")

    def _index_locked(self, bullet_id: str) -> int:
        for index, bullet in enumerate(self._bullets):
            if bullet.id == bullet_id:
                return index
        raise KeyError(f"Unknown bullet: {bullet_id}")

    def _record_outcome_locked(self, bullet_id: str, helpful: bool) -> None:
        index = self._index_locked(bullet_id)
        bullet = self._bullets[index]
        counts = {"times_selected": bullet.times_selected + 1}
        if helpful:
            counts["helpful_count"] = bullet.helpful_count + 1
        else:
            counts["harmful_count"] = bullet.harmful_count + 1
        self._bullets[index] = bullet.model_copy(update=counts)

    def _prune_locked(self) -> int:
        """Retire low performers, then cap active bullets per analyzer."""
        retired = 0
        for index, bullet in enumerate(self._bullets):
            if (
                bullet.active
                and bullet.evaluations >= self.prune_min_evaluations
                and bullet.success_rate < self.prune_success_threshold
            ):
                self._bullets[index] = bullet.model_copy(update={"active": False})
                retired += 1

        nodes = {b.node for b in self._bullets if b.active}
        for node in nodes:
            active = [i for i, b in enumerate(self._bullets) if b.active and b.node == node]
            overflow = len(active) - self.max_bullets_per_node
            if overflow <= 0:
                continue
            least_reliable = sorted(active, key=lambda i: (self._bullets[i].reliability, i))
            for index in least_reliable[:overflow]:
                self._bullets[index] = self._bullets[index].model_copy(update={"active": False})
                retired += 1
        return retired
