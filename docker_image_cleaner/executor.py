import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import docker

from .models import Disposition, Image
from .registry import ImageRegistry

logger = logging.getLogger(__name__)


@dataclass
class RemovalResult:
    """Outcome of one ``docker rmi`` call."""

    kind: str
    image: Image
    target: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ExecutionReport:
    would_delete: List[Image] = field(default_factory=list)
    attempted: List[RemovalResult] = field(default_factory=list)

    @property
    def failures(self) -> List[RemovalResult]:
        return [result for result in self.attempted if not result.ok]

    @property
    def acted_on(self) -> List[Image]:
        """Images a real removal was attempted for, in order, each listed once."""
        seen = {}
        for result in self.attempted:
            seen.setdefault(result.image.id, result.image)
        return list(seen.values())

    @property
    def removed(self) -> List[Image]:
        """Images whose every removal target succeeded."""
        failed = {result.image.id for result in self.failures}
        return [image for image in self.acted_on if image.id not in failed]

    @property
    def visited(self) -> List[Image]:
        """Every image the run went through, either for real or as a dry run."""
        return self.would_delete + self.acted_on


def removal_order(classification) -> list:
    """Eligible decisions ordered children first.

    The daemon refuses to remove an image that still has children, so deeper
    images go before their parents. Ties are broken by id.
    """
    registry = ImageRegistry(d.image for d in classification)
    depth = {d.image.id: len(list(registry.ancestors(d.image.id))) for d in classification.eligible}
    return sorted(classification.eligible, key=lambda d: (-depth[d.image.id], d.image.id))


def removal_targets(image: Image) -> List[str]:
    """Remove by each tag when there are several, otherwise by id."""
    if len(image.tags) <= 1:
        return [image.id]
    return list(image.tags)


def backup_image_info(images: List[Image], backup_file: str):
    """Backup image information before deletion."""
    backup_data = {
        "timestamp": datetime.now().isoformat(),
        "images": [
            {
                "id": image.id,
                "short_id": image.short_id,
                "tags": list(image.tags),
                "digests": list(image.digests),
                "parent": image.parent_id,
                "created": image.created.isoformat() if image.created else "",
                "size": image.size,
            }
            for image in images
        ],
    }
    try:
        os.makedirs(os.path.dirname(backup_file) or ".", exist_ok=True)
        with open(backup_file, "w") as f:
            json.dump(backup_data, f, indent=2)
        logger.info(f"Backed up {len(images)} image(s) info to {backup_file}")
    except OSError as e:
        logger.error(f"Failed to backup image info: {e}")


class DeletionExecutor:
    """Removes delete-eligible images, or reports what it would remove."""

    def __init__(self, client, backup_file: str = None):
        self.client = client
        self.backup_file = backup_file

    def nuke_image(self, kind: str, image: Image, really_delete: bool) -> List[RemovalResult]:
        if not really_delete:
            logger.info(f"Would have deleted {kind} image {image}")
            return []

        logger.info(f"Deleting {kind} image {image}")
        results = []
        for target in removal_targets(image):
            try:
                self.client.images.remove(target, force=False, noprune=True)
                results.append(RemovalResult(kind, image, target))
            except docker.errors.DockerException as e:
                logger.error(f"Error while removing {kind} image {target}: {e}")
                results.append(RemovalResult(kind, image, target, error=str(e)))
        return results

    def execute(self, classification, delete_dangling: bool = False, delete_leaf: bool = False) -> ExecutionReport:
        enabled = {
            Disposition.DELETE_DANGLING: delete_dangling,
            Disposition.DELETE_LEAF: delete_leaf,
        }
        eligible = removal_order(classification)
        report = ExecutionReport()

        to_remove = [d.image for d in eligible if enabled[d.disposition]]
        if to_remove and self.backup_file:
            backup_image_info(to_remove, self.backup_file)

        for decision in eligible:
            really_delete = enabled[decision.disposition]
            results = self.nuke_image(decision.disposition.value, decision.image, really_delete)
            if really_delete:
                report.attempted.extend(results)
            else:
                report.would_delete.append(decision.image)

        if report.attempted:
            logger.info(
                f"Removed {len(report.attempted) - len(report.failures)} of {len(report.attempted)} "
                f"image reference(s), {len(report.failures)} failure(s)"
            )
        return report
