from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

NONE_TAG = "<none>:<none>"
NONE_DIGEST = "<none>@<none>"


def short_id(image_id: str) -> str:
    """Return the 12 character form of a docker id, without the sha256: prefix."""
    if image_id.startswith("sha256:"):
        return image_id[7:19]
    return image_id[:12]


@dataclass(frozen=True)
class Image:
    """A snapshot of one image in the local store."""

    id: str
    parent_id: str = ""
    repo_tags: Tuple[str, ...] = ()
    repo_digests: Tuple[str, ...] = ()
    created: Optional[datetime] = None
    top_level: bool = False
    size: int = 0

    @property
    def tags(self) -> Tuple[str, ...]:
        return tuple(tag for tag in self.repo_tags if tag and tag != NONE_TAG)

    @property
    def digests(self) -> Tuple[str, ...]:
        return tuple(d for d in self.repo_digests if d and d != NONE_DIGEST)

    @property
    def is_dangling(self) -> bool:
        return not self.tags and not self.digests

    @property
    def short_id(self) -> str:
        return short_id(self.id)

    def __str__(self) -> str:
        names = ",".join(self.tags) or "<dangling>"
        return f"{self.short_id}: {names}"


@dataclass(frozen=True)
class Container:
    id: str
    image_id: str


class Disposition(Enum):
    KEEP = "keep"
    DELETE_DANGLING = "dangling"
    DELETE_LEAF = "leaf"

    @property
    def is_delete(self) -> bool:
        return self is not Disposition.KEEP


@dataclass(frozen=True)
class Decision:
    """The disposition of one image and the reasons behind it."""

    image: Image
    disposition: Disposition
    reasons: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def reason(self) -> str:
        return ", ".join(self.reasons)
