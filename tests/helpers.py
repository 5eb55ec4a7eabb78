"""Shared builders for snapshot images, containers and docker SDK fakes."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import docker

from docker_image_cleaner.models import Container, Image

NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)
LONG_AGO = NOW - timedelta(days=30)


def make_image(image_id, parent="", tags=(), digests=(), created=LONG_AGO, top_level=None, size=0):
    """Build an Image; tagged images are top-level unless told otherwise."""
    if top_level is None:
        top_level = bool([t for t in tags if t != "<none>:<none>"])
    return Image(
        id=image_id,
        parent_id=parent,
        repo_tags=tuple(tags),
        repo_digests=tuple(digests),
        created=created,
        top_level=top_level,
        size=size,
    )


def make_container(container_id, image_id):
    return Container(id=container_id, image_id=image_id)


def docker_image(image_id, parent="", tags=(), digests=(), created="2026-09-01T10:00:00.123456789Z", size=1024):
    """A stand-in for docker.models.images.Image."""
    image = MagicMock()
    image.id = image_id
    image.attrs = {
        "Id": image_id,
        "Parent": parent,
        "RepoTags": list(tags),
        "RepoDigests": list(digests),
        "Created": created,
        "Size": size,
    }
    return image


class FakeContainer:
    """A sparse docker container whose reload() performs the inspect."""

    def __init__(self, container_id, listed_image_id=None, inspected_image_id=None, error=None):
        self.id = container_id
        self.attrs = {"Id": container_id}
        if listed_image_id:
            self.attrs["ImageID"] = listed_image_id
        self.inspected_image_id = inspected_image_id
        self.error = error

    def reload(self):
        if self.error is not None:
            raise self.error
        self.attrs = {"Id": self.id, "Image": self.inspected_image_id}


def docker_client(all_images=(), top_level_images=None, containers=()):
    """A MagicMock docker client serving the given listings."""
    if top_level_images is None:
        top_level_images = [image for image in all_images if image.attrs["RepoTags"]]
    client = MagicMock()
    client.images.list.side_effect = lambda all=False, **kwargs: list(all_images if all else top_level_images)
    client.containers.list.return_value = list(containers)
    return client


class FakeImageStore:
    """Just enough of ``docker rmi`` to check removal order and pruning.

    Removing the last reference of an image that still has children is
    refused with a conflict. Unless ``noprune`` is set, untagged parents left
    without children are removed too, as the daemon does.
    """

    def __init__(self, images):
        self.parents = {image.id: image.parent_id for image in images}
        self.tags = {image.id: set(image.tags) for image in images}

    def _children(self, image_id):
        return [child for child, parent in self.parents.items() if parent == image_id]

    def remove(self, image, force=False, noprune=False):
        if image in self.parents:
            image_id = image
            self.tags[image_id].clear()
        else:
            image_id = next((i for i, tags in self.tags.items() if image in tags), None)
            if image_id is None:
                raise docker.errors.NotFound(f"No such image: {image}")
            self.tags[image_id].discard(image)
            if self.tags[image_id]:
                return
        if self._children(image_id):
            raise docker.errors.APIError(
                f"conflict: unable to delete {image_id} (image has dependent child images)"
            )
        parent = self.parents.pop(image_id)
        del self.tags[image_id]
        while not noprune and parent in self.parents and not self.tags[parent] and not self._children(parent):
            next_parent = self.parents.pop(parent)
            del self.tags[parent]
            parent = next_parent


class FakeDaemon:
    def __init__(self, images):
        self.images = FakeImageStore(images)
