import logging
import re
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional

import docker

from .errors import InventoryError
from .models import Container, Image, short_id

logger = logging.getLogger(__name__)

_ISO_TIMESTAMP = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.\d+)?(Z|[+-]\d{2}:?\d{2})?$"
)


class Snapshot(NamedTuple):
    images: List[Image]
    containers: List[Container]


def parse_created(value) -> Optional[datetime]:
    """Parse the ``Created`` field of an image.

    The inspect API returns RFC 3339 with nanoseconds, the list API returns
    unix seconds. Sub-second precision is dropped. Returns None when the
    value can't be understood.
    """
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    match = _ISO_TIMESTAMP.match(str(value).strip())
    if not match:
        return None
    stamp, tz = match.groups()
    if not tz or tz == "Z":
        tz = "+00:00"
    elif ":" not in tz:
        tz = f"{tz[:3]}:{tz[3:]}"
    try:
        return datetime.fromisoformat(stamp + tz).astimezone(timezone.utc)
    except ValueError:
        return None


def image_from_docker(docker_image, top_level: bool = False) -> Image:
    """Convert a ``docker.models.images.Image`` into a snapshot Image."""
    attrs = docker_image.attrs
    created = parse_created(attrs.get("Created"))
    if created is None:
        # Treated as brand new by the safety window.
        logger.warning(f"Failed to parse timestamp {attrs.get('Created')!r} for image {short_id(docker_image.id)}")
    return Image(
        id=docker_image.id,
        parent_id=attrs.get("Parent") or attrs.get("ParentId") or "",
        repo_tags=tuple(attrs.get("RepoTags") or ()),
        repo_digests=tuple(attrs.get("RepoDigests") or ()),
        created=created,
        top_level=top_level,
        size=attrs.get("Size") or 0,
    )


def connect(docker_host: str = None) -> docker.DockerClient:
    """Create a docker client and make sure the daemon answers."""
    try:
        if docker_host:
            client = docker.DockerClient(base_url=docker_host)
        else:
            client = docker.from_env()
        client.ping()
    except docker.errors.DockerException as e:
        error_msg = str(e)
        if "Permission denied" in error_msg:
            raise InventoryError(
                "Could not connect to Docker daemon: Permission denied. "
                "Please ensure the user is in the 'docker' group."
            ) from e
        raise InventoryError(f"Could not connect to Docker daemon: {e}") from e
    return client


def fetch_images(client) -> List[Image]:
    """Returns every image in the store, flagging the ones from the top-level listing."""
    try:
        all_images = client.images.list(all=True)
        top_level_ids = {image.id for image in client.images.list()}
    except docker.errors.DockerException as e:
        raise InventoryError(f"Error getting docker images: {e}") from e
    return [image_from_docker(image, image.id in top_level_ids) for image in all_images]


def container_image_id(container) -> Optional[str]:
    """Inspect one container and return the id of the image it was created from.

    If the inspect call fails the image id from the listing is used instead,
    which keeps the image protected. Returns None when neither is available.
    """
    listed_image_id = container.attrs.get("ImageID")
    try:
        container.reload()
    except docker.errors.DockerException as e:
        if listed_image_id:
            logger.warning(
                f"Error getting container info for {short_id(container.id)}: {e}; "
                f"using listed image {short_id(listed_image_id)}"
            )
            return listed_image_id
        logger.warning(f"Error getting container info for {short_id(container.id)}: {e}; skipping")
        return None
    return container.attrs.get("Image") or listed_image_id


def fetch_containers(client) -> List[Container]:
    """Returns every container, running or stopped, with its image id."""
    try:
        listed = client.containers.list(all=True, sparse=True)
    except docker.errors.DockerException as e:
        raise InventoryError(f"Error getting docker containers: {e}") from e

    containers = []
    for container in listed:
        image_id = container_image_id(container)
        if image_id:
            containers.append(Container(id=container.id, image_id=image_id))
    return containers


def fetch_snapshot(client) -> Snapshot:
    images = fetch_images(client)
    containers = fetch_containers(client)
    logger.info(f"Found {len(images)} images and {len(containers)} containers")
    return Snapshot(images=images, containers=containers)
