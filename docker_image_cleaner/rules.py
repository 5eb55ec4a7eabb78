"""Protection rules and the set they accumulate into.

Each rule is an independent predicate over a single image. Rules never share
state: every rule produces its own ``ProtectionSet`` and the sets are merged
afterwards, so the order rules run in cannot change the outcome.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Tuple

from .config import format_duration
from .models import Container, Image


class ProtectionSet:
    """Image ids that must be kept, each with the reasons it was protected."""

    def __init__(self, reasons: Dict[str, List[str]] = None):
        self._reasons = {image_id: list(r) for image_id, r in (reasons or {}).items()}

    def __contains__(self, image_id) -> bool:
        return image_id in self._reasons

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._reasons))

    def __len__(self) -> int:
        return len(self._reasons)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ProtectionSet):
            return NotImplemented
        return self._reasons == other._reasons

    def protect(self, image_id: str, reason: str) -> bool:
        """Mark ``image_id`` as protected. Returns True if it was not protected before."""
        reasons = self._reasons.get(image_id)
        if reasons is None:
            self._reasons[image_id] = [reason]
            return True
        if reason not in reasons:
            reasons.append(reason)
        return False

    def reasons(self, image_id: str) -> Tuple[str, ...]:
        return tuple(self._reasons.get(image_id, ()))

    def copy(self) -> "ProtectionSet":
        return ProtectionSet(self._reasons)

    def merge(self, other: "ProtectionSet") -> "ProtectionSet":
        merged = self.copy()
        for image_id in other:
            for reason in other.reasons(image_id):
                merged.protect(image_id, reason)
        return merged


class Rule:
    name = "rule"

    def matches(self, image: Image) -> bool:
        raise NotImplementedError

    def reason(self, image: Image) -> str:
        return self.name


class ExclusionRule(Rule):
    """Protects images carrying a tag from the exclude list (exact match)."""

    name = "excluded"

    def __init__(self, exclude: Iterable[str]):
        self.exclude = frozenset(exclude)

    def matches(self, image: Image) -> bool:
        return any(tag in self.exclude for tag in image.tags)


class SafetyWindowRule(Rule):
    """Protects images younger than the safety duration.

    ``now`` is fixed for the whole pass. Both sides are truncated to whole
    seconds. An image with an unknown creation time counts as too recent.
    """

    name = "too recent"

    def __init__(self, now: datetime, duration: timedelta):
        self.now = now.replace(microsecond=0)
        self.duration = duration

    def age_of(self, image: Image) -> timedelta:
        return self.now - image.created.replace(microsecond=0)

    def matches(self, image: Image) -> bool:
        if image.created is None:
            return True
        return self.age_of(image) < self.duration

    def reason(self, image: Image) -> str:
        if image.created is None:
            return "too recent (unknown age)"
        return f"too recent ({format_duration(self.age_of(image))} old)"


class InUseRule(Rule):
    """Protects images that a container was created from."""

    name = "in use"

    def __init__(self, containers: Iterable[Container]):
        self.image_ids = frozenset(container.image_id for container in containers)

    def matches(self, image: Image) -> bool:
        return image.id in self.image_ids


def evaluate(rule: Rule, images: Iterable[Image]) -> ProtectionSet:
    protection = ProtectionSet()
    for image in images:
        if rule.matches(image):
            protection.protect(image.id, rule.reason(image))
    return protection


def evaluate_rules(rules: Iterable[Rule], images: Iterable[Image]) -> ProtectionSet:
    images = list(images)
    protection = ProtectionSet()
    for rule in rules:
        protection = protection.merge(evaluate(rule, images))
    return protection
