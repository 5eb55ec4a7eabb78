"""Tests for reading the image and container inventory from docker."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import docker
import pytest

from docker_image_cleaner.errors import InventoryError
from docker_image_cleaner.inventory import (
    connect,
    container_image_id,
    fetch_containers,
    fetch_images,
    fetch_snapshot,
    image_from_docker,
    parse_created,
)
from tests.helpers import FakeContainer, docker_client, docker_image


class TestParseCreated:
    def test_nanosecond_utc_timestamp(self):
        assert parse_created("2024-01-15T10:30:00.123456789Z") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_offset_is_converted_to_utc(self):
        assert parse_created("2024-01-15T12:30:00+02:00") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_unix_seconds(self):
        assert parse_created(1705314600) == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_missing_timezone_is_utc(self):
        assert parse_created("2024-01-15T10:30:00") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "yesterday", "2024-13-45T99:99:99Z"])
    def test_unparseable_values(self, value):
        assert parse_created(value) is None


class TestImageFromDocker:
    def test_fields_are_copied(self):
        raw = docker_image(
            "sha256:abc",
            parent="sha256:def",
            tags=["app:v1"],
            digests=["app@sha256:123"],
            created="2024-01-15T10:30:00Z",
            size=2048,
        )
        image = image_from_docker(raw, top_level=True)
        assert image.id == "sha256:abc"
        assert image.parent_id == "sha256:def"
        assert image.tags == ("app:v1",)
        assert image.digests == ("app@sha256:123",)
        assert image.created == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert image.top_level is True
        assert image.size == 2048

    def test_null_tags_and_digests(self):
        raw = docker_image("sha256:abc")
        raw.attrs["RepoTags"] = None
        raw.attrs["RepoDigests"] = None
        image = image_from_docker(raw)
        assert image.is_dangling
        assert image.parent_id == ""

    def test_bad_timestamp_leaves_created_unset(self):
        image = image_from_docker(docker_image("sha256:abc", created="garbage"))
        assert image.created is None


class TestFetchImages:
    def test_top_level_flag_comes_from_default_listing(self):
        base = docker_image("sha256:base")
        app = docker_image("sha256:app", parent="sha256:base", tags=["app:v1"])
        client = docker_client(all_images=[base, app], top_level_images=[app])

        images = {image.id: image for image in fetch_images(client)}

        assert images["sha256:app"].top_level is True
        assert images["sha256:base"].top_level is False

    def test_listing_failure_is_fatal(self):
        client = MagicMock()
        client.images.list.side_effect = docker.errors.DockerException("daemon unreachable")
        with pytest.raises(InventoryError):
            fetch_images(client)


class TestFetchContainers:
    def test_inspected_image_id_is_used(self):
        container = FakeContainer("c1", listed_image_id="sha256:listed", inspected_image_id="sha256:inspected")
        assert container_image_id(container) == "sha256:inspected"

    def test_inspect_failure_falls_back_to_listed_image(self):
        container = FakeContainer("c1", listed_image_id="sha256:listed", error=docker.errors.NotFound("gone"))
        assert container_image_id(container) == "sha256:listed"

    def test_container_without_any_image_is_skipped(self):
        client = docker_client(
            containers=[
                FakeContainer("c1", error=docker.errors.APIError("boom")),
                FakeContainer("c2", inspected_image_id="sha256:b"),
            ]
        )
        containers = fetch_containers(client)
        assert [(c.id, c.image_id) for c in containers] == [("c2", "sha256:b")]
        client.containers.list.assert_called_once_with(all=True, sparse=True)

    def test_listing_failure_is_fatal(self):
        client = MagicMock()
        client.containers.list.side_effect = docker.errors.DockerException("daemon unreachable")
        with pytest.raises(InventoryError):
            fetch_containers(client)


class TestFetchSnapshot:
    def test_snapshot(self):
        client = docker_client(
            all_images=[docker_image("sha256:a", tags=["a:1"])],
            containers=[FakeContainer("c1", inspected_image_id="sha256:a")],
        )
        snapshot = fetch_snapshot(client)
        assert [image.id for image in snapshot.images] == ["sha256:a"]
        assert [container.image_id for container in snapshot.containers] == ["sha256:a"]


class TestConnect:
    def test_connect_pings_the_daemon(self):
        client = MagicMock()
        with patch("docker_image_cleaner.inventory.docker.from_env", return_value=client):
            assert connect() is client
        client.ping.assert_called_once()

    def test_explicit_host(self):
        with patch("docker_image_cleaner.inventory.docker.DockerClient") as client_cls:
            connect("tcp://docker:2375")
        client_cls.assert_called_once_with(base_url="tcp://docker:2375")

    def test_unreachable_daemon(self):
        with patch(
            "docker_image_cleaner.inventory.docker.from_env",
            side_effect=docker.errors.DockerException("Error while fetching server API version"),
        ):
            with pytest.raises(InventoryError, match="Could not connect"):
                connect()

    def test_permission_denied_hint(self):
        with patch(
            "docker_image_cleaner.inventory.docker.from_env",
            side_effect=docker.errors.DockerException("Permission denied"),
        ):
            with pytest.raises(InventoryError, match="docker' group"):
                connect()
