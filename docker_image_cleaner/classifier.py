"""Retention classifier.

Given one snapshot of images and containers, decide for every image whether
it is kept, deleted as a dangling layer, or deleted as an unused leaf. The
whole pass is in-memory and side-effect free.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from .models import Container, Decision, Disposition, Image
from .propagate import propagate
from .registry import ImageRegistry
from .rules import ExclusionRule, InUseRule, ProtectionSet, SafetyWindowRule, evaluate_rules

DEFAULT_SAFETY_DURATION = timedelta(hours=1)


@dataclass
class Classification:
    """The decisions of one classification pass, sorted by image id."""

    decisions: List[Decision]
    protection: ProtectionSet
    now: datetime

    def __post_init__(self):
        self._by_id: Dict[str, Decision] = {d.image.id: d for d in self.decisions}

    def __iter__(self):
        return iter(self.decisions)

    def __len__(self):
        return len(self.decisions)

    def decision_for(self, image_id: str) -> Optional[Decision]:
        return self._by_id.get(image_id)

    def with_disposition(self, disposition: Disposition) -> List[Decision]:
        return [d for d in self.decisions if d.disposition is disposition]

    @property
    def kept(self) -> List[Decision]:
        return self.with_disposition(Disposition.KEEP)

    @property
    def dangling(self) -> List[Decision]:
        return self.with_disposition(Disposition.DELETE_DANGLING)

    @property
    def leaves(self) -> List[Decision]:
        return self.with_disposition(Disposition.DELETE_LEAF)

    @property
    def eligible(self) -> List[Decision]:
        return [d for d in self.decisions if d.disposition.is_delete]


def decide(image: Image, protection: ProtectionSet) -> Decision:
    if image.id in protection:
        return Decision(image, Disposition.KEEP, protection.reasons(image.id))
    if image.is_dangling:
        return Decision(image, Disposition.DELETE_DANGLING, ("dangling",))
    return Decision(image, Disposition.DELETE_LEAF, ("leaf",))


def classify(
    images: Iterable[Image],
    containers: Iterable[Container] = (),
    exclude: Iterable[str] = (),
    safety_duration: timedelta = DEFAULT_SAFETY_DURATION,
    now: datetime = None,
) -> Classification:
    """Assign a disposition to every image in the snapshot.

    ``now`` defaults to the current UTC time and is sampled once, so every
    image is measured against the same cutoff. It must be timezone aware;
    creation times are compared in UTC.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        raise ValueError("now must be a timezone-aware datetime")
    now = now.astimezone(timezone.utc).replace(microsecond=0)

    registry = ImageRegistry(images)
    rules = [
        InUseRule(containers),
        ExclusionRule(exclude),
        SafetyWindowRule(now, safety_duration),
    ]
    protection = propagate(registry, evaluate_rules(rules, registry.all()))

    decisions = [decide(image, protection) for image in sorted(registry.all(), key=lambda i: i.id)]
    return Classification(decisions=decisions, protection=protection, now=now)
