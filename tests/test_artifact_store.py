import asyncio
import json

import pytest

from conftest import PRIMARY, make_image
from fanai.core.errors import ArtifactNotFound, BlobForbidden
from fanai.services.artifact_store import ArtifactStore
from fanai.services.blob_store import LocalBlobStore, StorageTargetRegistry


@pytest.fixture
def store(blob_store, registry, clock):
    return ArtifactStore(blob_store, registry, lookback_days=7, clock=clock)


def test_round_trip_without_knowing_date(store, blob_store, clock):
    image = make_image()
    stored = asyncio.run(store.store_artifact("u1", "gen_1", image, "red-carpet", "jane-star"))

    assert stored.date_folder == "2024-03-10"
    assert stored.url == "/artifact/u1/gen_1"

    clock.advance(days=3)
    assert asyncio.run(store.fetch_artifact("u1", "gen_1")) == image

    sidecar = asyncio.run(blob_store.get(PRIMARY, "users/u1/2024-03-10/gen_1.json")).json()
    assert sidecar["status"] == "committed"
    assert sidecar["dateFolder"] == "2024-03-10"
    assert sidecar["templateSlug"] == "red-carpet"
    assert sidecar["userId"] == "u1"


def test_image_found_by_probe_when_metadata_missing(store, blob_store):
    image = make_image(color=(0, 255, 0))
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-08/gen_2.png", image, "Add"))

    assert asyncio.run(store.fetch_artifact("u1", "gen_2")) == image


def test_artifact_outside_window_not_found(store, blob_store):
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-02/gen_3.png", make_image(), "Add"))

    with pytest.raises(ArtifactNotFound) as exc_info:
        asyncio.run(store.fetch_artifact("u1", "gen_3"))
    assert len(exc_info.value.details["searched_folders"]) == 7


def test_unknown_artifact_not_found(store):
    with pytest.raises(ArtifactNotFound):
        asyncio.run(store.fetch_artifact("u1", "missing"))


def test_sidecar_date_folder_is_trusted(store, blob_store):
    image = make_image(color=(10, 20, 30))
    # Sidecar in one folder pointing at the image in another
    sidecar = {"userId": "u1", "artifactId": "gen_4", "dateFolder": "2024-03-05", "status": "committed"}
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-10/gen_4.json", json.dumps(sidecar).encode(), "Add"))
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-05/gen_4.png", image, "Add"))

    assert asyncio.run(store.fetch_artifact("u1", "gen_4")) == image


def test_legacy_sidecar_without_status(store, blob_store):
    image = make_image(color=(1, 2, 3))
    sidecar = {
        "userId": "u1",
        "generationId": "gen_5",
        "template": "red-carpet",
        "celebrity": "jane-star",
        "timestamp": "2024-03-09T18:30:00.000Z",
    }
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-09/gen_5.json", json.dumps(sidecar).encode(), "Add"))
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-09/gen_5.png", image, "Add"))

    assert asyncio.run(store.fetch_artifact("u1", "gen_5")) == image


def test_corrupt_sidecar_falls_back_to_probe(store, blob_store):
    image = make_image(color=(4, 5, 6))
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-10/gen_6.json", b"{not json", "Add"))
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-10/gen_6.png", image, "Add"))

    assert asyncio.run(store.fetch_artifact("u1", "gen_6")) == image



def test_sidecar_with_unparseable_timestamp_falls_back_to_probe(store, blob_store):
    image = make_image(color=(11, 12, 13))
    sidecar = {"userId": "u1", "artifactId": "gen_9", "timestamp": "not-a-date"}
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-10/gen_9.json", json.dumps(sidecar).encode(), "Add"))
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-10/gen_9.png", image, "Add"))

    assert asyncio.run(store.fetch_artifact("u1", "gen_9")) == image


def test_pending_sidecar_is_ignored_and_image_probed(store, blob_store):
    image = make_image(color=(14, 15, 16))
    # Sidecar claims another folder, but is not committed yet
    sidecar = {"userId": "u1", "artifactId": "gen_10", "dateFolder": "2024-03-04", "status": "pending"}
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-09/gen_10.json", json.dumps(sidecar).encode(), "Add"))
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-09/gen_10.png", image, "Add"))

    assert asyncio.run(store.fetch_artifact("u1", "gen_10")) == image


def test_pending_sidecar_without_image_is_not_found(store, blob_store):
    sidecar = {"userId": "u1", "artifactId": "gen_11", "dateFolder": "2024-03-09", "status": "pending"}
    asyncio.run(blob_store.put(PRIMARY, "users/u1/2024-03-09/gen_11.json", json.dumps(sidecar).encode(), "Add"))

    with pytest.raises(ArtifactNotFound):
        asyncio.run(store.fetch_artifact("u1", "gen_11"))

class FullPrimaryStore(LocalBlobStore):
    """Primary repository refuses every write, as GitHub does at its size limit."""

    async def put(self, target, path, content, message, expected_revision=None):
        if target == PRIMARY:
            raise BlobForbidden(f"Repository size limit exceeded for {target}", path, 403)
        return await super().put(target, path, content, message, expected_revision)


def test_rotation_on_full_repository(tmp_path, clock):
    blob_store = FullPrimaryStore(str(tmp_path / "blobs"))
    state_file = str(tmp_path / "targets.json")
    registry = StorageTargetRegistry(state_file, PRIMARY, "fan-ai-celebs")
    store = ArtifactStore(blob_store, registry, clock=clock)
    image = make_image()

    stored = asyncio.run(store.store_artifact("u1", "gen_7", image))

    assert stored.target != PRIMARY
    assert stored.target.repo.startswith("fan-ai-celebs-")
    assert StorageTargetRegistry(state_file, PRIMARY).active == stored.target
    assert asyncio.run(store.fetch_artifact("u1", "gen_7")) == image


def test_retired_target_still_readable(tmp_path, clock):
    blob_store = LocalBlobStore(str(tmp_path / "blobs"))
    registry = StorageTargetRegistry(str(tmp_path / "targets.json"), PRIMARY)
    store = ArtifactStore(blob_store, registry, clock=clock)
    image = make_image(color=(7, 8, 9))

    asyncio.run(store.store_artifact("u1", "gen_8", image))
    asyncio.run(registry.rotate(blob_store, PRIMARY))

    assert registry.active != PRIMARY
    assert asyncio.run(store.fetch_artifact("u1", "gen_8")) == image
