import logging

from .models import short_id
from .registry import ImageRegistry
from .rules import ProtectionSet

logger = logging.getLogger(__name__)


def protect_tagged_parents(registry: ImageRegistry, protection: ProtectionSet) -> ProtectionSet:
    """Protect the closest named ancestor of every leaf image.

    Untagged layers between the leaf and that ancestor are left alone.
    """
    for image in sorted(registry.leaves(), key=lambda i: i.id):
        for ancestor in registry.ancestors(image.id):
            if ancestor.is_dangling:
                continue
            if ancestor.id not in protection:
                protection.protect(ancestor.id, f"tagged parent of {image.short_id}")
                logger.debug(f"Protecting tagged parent image {ancestor} of {image.short_id}")
            break
    return protection


def protect_ancestors(registry: ImageRegistry, protection: ProtectionSet) -> ProtectionSet:
    """Close the set under ancestry: every parent of a protected image is protected."""
    for image_id in sorted(protection):
        for ancestor in registry.ancestors(image_id):
            if ancestor.id in protection:
                continue
            protection.protect(ancestor.id, f"ancestor of {short_id(image_id)}")
            logger.debug(f"Protecting parent image {ancestor} of {short_id(image_id)}")
    return protection


def propagate(registry: ImageRegistry, protection: ProtectionSet) -> ProtectionSet:
    """Return a copy of ``protection`` extended with tagged parents and all ancestors."""
    closed = protection.copy()
    protect_tagged_parents(registry, closed)
    protect_ancestors(registry, closed)
    return closed
