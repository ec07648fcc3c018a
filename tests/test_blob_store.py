import asyncio
import base64
import json

import httpx
import pytest

from fanai.core.errors import (
    BlobConflict,
    BlobForbidden,
    BlobNotFound,
    BlobValidationFailed,
    RotationRequired,
    UpstreamUnavailable,
)
from fanai.services.blob_store import (
    GitHubBlobStore,
    LocalBlobStore,
    StorageTarget,
    StorageTargetRegistry,
    blob_revision,
)

TARGET = StorageTarget("acme", "fan-ai-celebs", "main")
API = "https://api.github.test"


def github_store(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GitHubBlobStore("test-token", API, client=client)


def test_blob_revision_matches_git():
    # `printf 'hello' | git hash-object --stdin`
    assert blob_revision(b"hello") == "b6fc4c620b67d95f953a5c1c1230aaab5db5a1b0"


# ===== GitHub backend =====

def test_github_get_decodes_inline_content():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={
            "sha": "abc123",
            "encoding": "base64",
            "content": base64.b64encode(b'[{"slug": "x"}]').decode() + "\n",
        })

    blob = asyncio.run(github_store(handler).get(TARGET, "celebrities/celebrities.json"))

    assert blob.content == b'[{"slug": "x"}]'
    assert blob.revision == "abc123"
    assert blob.json() == [{"slug": "x"}]
    assert seen["url"] == f"{API}/repos/acme/fan-ai-celebs/contents/celebrities/celebrities.json?ref=main"
    assert seen["auth"] == "Bearer test-token"


def test_github_get_large_file_reads_git_blob():
    def handler(request):
        if "/git/blobs/" in request.url.path:
            return httpx.Response(200, json={"content": base64.b64encode(b"big").decode()})
        return httpx.Response(200, json={"sha": "deadbeef", "encoding": "none", "content": ""})

    blob = asyncio.run(github_store(handler).get(TARGET, "users/u1/2024-03-10/gen_1.png"))

    assert blob.content == b"big"
    assert blob.revision == "deadbeef"


def test_github_put_sends_expected_revision():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"content": {"sha": "newsha"}})

    revision = asyncio.run(github_store(handler).put(
        TARGET, "templates/templates.json", b"[]", "Update templates", expected_revision="oldsha"
    ))

    assert revision == "newsha"
    assert seen["method"] == "PUT"
    assert seen["body"]["sha"] == "oldsha"
    assert seen["body"]["branch"] == "main"
    assert base64.b64decode(seen["body"]["content"]) == b"[]"


def test_github_put_without_revision_omits_sha():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"content": {"sha": "s1"}})

    asyncio.run(github_store(handler).put(TARGET, "a.png", b"x", "Add"))
    assert "sha" not in seen["body"]


@pytest.mark.parametrize("status_code, message, expected", [
    (404, "Not Found", BlobNotFound),
    (409, "is at 123 but expected 456", BlobConflict),
    (422, 'Invalid request.\n\n"sha" wasn\'t supplied.', BlobConflict),
    (422, "Repository is over its data quota", BlobValidationFailed),
    (403, "Repository size limit exceeded", BlobForbidden),
    (403, "API rate limit exceeded for user", UpstreamUnavailable),
    (429, "Too many requests", UpstreamUnavailable),
    (502, "Bad gateway", UpstreamUnavailable),
])
def test_github_error_mapping(status_code, message, expected):
    def handler(request):
        return httpx.Response(status_code, json={"message": message})

    with pytest.raises(expected):
        asyncio.run(github_store(handler).put(TARGET, "a.png", b"x", "Add"))


def test_github_size_errors_require_rotation():
    assert issubclass(BlobForbidden, RotationRequired)
    assert issubclass(BlobValidationFailed, RotationRequired)
    assert not issubclass(BlobConflict, RotationRequired)


def test_github_transport_error_is_upstream_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(UpstreamUnavailable):
        asyncio.run(github_store(handler).get(TARGET, "a.png"))


def test_github_create_repository():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={
            "name": "fan-ai-celebs-1700000000000",
            "owner": {"login": "acme"},
            "default_branch": "main",
        })

    target = asyncio.run(github_store(handler).create_repository("fan-ai-celebs-1700000000000"))

    assert target == StorageTarget("acme", "fan-ai-celebs-1700000000000", "main")
    assert seen["path"] == "/user/repos"
    assert seen["body"]["private"] is True


def test_github_requires_token():
    with pytest.raises(ValueError):
        GitHubBlobStore("")


# ===== Local backend =====

def test_local_put_get_round_trip(blob_store):
    revision = asyncio.run(blob_store.put(TARGET, "celebs/a.jpg", b"image", "Add"))
    blob = asyncio.run(blob_store.get(TARGET, "celebs/a.jpg"))

    assert blob.content == b"image"
    assert blob.revision == revision == blob_revision(b"image")
    assert asyncio.run(blob_store.get(TARGET, "ignored", revision=revision)).content == b"image"


def test_local_missing_blob(blob_store):
    with pytest.raises(BlobNotFound):
        asyncio.run(blob_store.get(TARGET, "nope.json"))


def test_local_overwrite_requires_current_revision(blob_store):
    first = asyncio.run(blob_store.put(TARGET, "data.json", b"[1]", "Add"))

    with pytest.raises(BlobConflict):
        asyncio.run(blob_store.put(TARGET, "data.json", b"[2]", "Blind overwrite"))
    with pytest.raises(BlobConflict):
        asyncio.run(blob_store.put(TARGET, "data.json", b"[2]", "Stale", expected_revision="0" * 40))

    asyncio.run(blob_store.put(TARGET, "data.json", b"[2]", "Update", expected_revision=first))
    assert asyncio.run(blob_store.get(TARGET, "data.json")).content == b"[2]"


def test_local_revision_for_missing_blob_conflicts(blob_store):
    with pytest.raises(BlobConflict):
        asyncio.run(blob_store.put(TARGET, "new.json", b"{}", "Add", expected_revision="abc"))


def test_local_size_limit(tmp_path):
    store = LocalBlobStore(str(tmp_path / "limited"), max_repository_bytes=10)
    asyncio.run(store.put(TARGET, "small", b"12345", "Add"))

    with pytest.raises(BlobValidationFailed):
        asyncio.run(store.put(TARGET, "large", b"123456789", "Add"))


# ===== Storage targets =====

def test_registry_rotation_is_persisted(tmp_path, blob_store):
    state_file = str(tmp_path / "targets.json")
    registry = StorageTargetRegistry(state_file, TARGET, "fan-ai-celebs")
    assert registry.active == TARGET

    rotated = asyncio.run(registry.rotate(blob_store, TARGET))

    assert rotated != TARGET
    assert rotated.repo.startswith("fan-ai-celebs-")
    assert registry.active == rotated
    assert registry.targets() == [rotated, TARGET]

    reloaded = StorageTargetRegistry(state_file, TARGET, "fan-ai-celebs")
    assert reloaded.active == rotated
    assert reloaded.targets() == [rotated, TARGET]


def test_registry_rotates_once_for_concurrent_failures(registry, blob_store):
    async def scenario():
        return await asyncio.gather(
            registry.rotate(blob_store, registry.active),
            registry.rotate(blob_store, registry.active),
        )

    first, second = asyncio.run(scenario())

    assert first == second
    assert len(registry.targets()) == 2


def test_registry_ignores_unreadable_state(tmp_path):
    state_file = tmp_path / "targets.json"
    state_file.write_text("not json")

    assert StorageTargetRegistry(str(state_file), TARGET).active == TARGET
