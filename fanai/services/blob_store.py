"""
Blob Store Client
Named byte blobs with revision metadata, kept in a version-controlled repository.

Backends:
- GitHubBlobStore: GitHub REST contents API (production)
- LocalBlobStore: filesystem tree with content-hash revisions (local dev, tests)

Every successful write is a permanent revision; there is no delete.
"""

import asyncio
import base64
import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

import httpx

from fanai.core.errors import (
    BlobStoreError,
    BlobNotFound,
    BlobConflict,
    BlobForbidden,
    BlobValidationFailed,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageTarget:
    """One backing repository."""
    owner: str
    repo: str
    branch: str = "main"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "StorageTarget":
        return cls(owner=data["owner"], repo=data["repo"], branch=data.get("branch", "main"))

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}@{self.branch}"


@dataclass
class Blob:
    """Blob bytes plus the revision token needed to update them."""
    path: str
    content: bytes
    revision: str

    def json(self):
        return json.loads(self.content.decode("utf-8"))


def blob_revision(content: bytes) -> str:
    """Git blob object id for content."""
    header = f"blob {len(content)}\0".encode()
    return hashlib.sha1(header + content).hexdigest()


class BlobStoreClient(ABC):
    """Contract shared by all blob store backends."""

    @abstractmethod
    async def get(self, target: StorageTarget, path: str, revision: Optional[str] = None) -> Blob:
        """
        Read a blob.

        Args:
            target: Repository to read from
            path: Blob path inside the repository
            revision: Specific revision to read (latest if omitted)

        Raises:
            BlobNotFound: blob (or revision) does not exist
        """

    @abstractmethod
    async def put(
        self,
        target: StorageTarget,
        path: str,
        content: bytes,
        message: str,
        expected_revision: Optional[str] = None,
    ) -> str:
        """
        Write a blob and return its new revision.

        expected_revision must be the current revision when updating an
        existing blob; None means "create new".

        Raises:
            BlobConflict: expected_revision is stale, or the blob exists and no
                revision was given
            BlobForbidden / BlobValidationFailed: repository refuses the write
        """

    @abstractmethod
    async def create_repository(self, name: str) -> StorageTarget:
        """Create a fresh repository and return it as a target."""

    async def close(self):
        """Release network resources."""


class GitHubBlobStore(BlobStoreClient):
    """Blob store backed by the GitHub REST API."""

    API_VERSION = "2022-11-28"

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        if not token:
            raise ValueError("GITHUB_TOKEN not configured")
        self.api_url = api_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.API_VERSION,
        }

    def _contents_url(self, target: StorageTarget, path: str) -> str:
        return f"{self.api_url}/repos/{target.owner}/{target.repo}/contents/{quote(path, safe='/')}"

    async def _request(self, method: str, url: str, path: str = "", **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, url, headers=self.headers, **kwargs)
        except httpx.TransportError as e:
            raise UpstreamUnavailable(f"GitHub unreachable: {e}", {"path": path}) from e
        self._raise_for_status(response, path)
        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return str(response.json().get("message", ""))
        except ValueError:
            return response.text

    def _raise_for_status(self, response: httpx.Response, path: str):
        code = response.status_code
        if code < 400:
            return
        message = self._error_message(response)
        if code == 404:
            raise BlobNotFound(f"Not found: {path}", path, code)
        if code == 409:
            raise BlobConflict(f"Revision conflict on {path}: {message}", path, code)
        if code == 422:
            # GitHub reports a missing or mismatched sha as a validation error
            if "sha" in message.lower():
                raise BlobConflict(f"Revision conflict on {path}: {message}", path, code)
            raise BlobValidationFailed(f"Write rejected for {path}: {message}", path, code)
        if code == 403:
            if "rate limit" in message.lower():
                raise UpstreamUnavailable(f"GitHub rate limit: {message}", {"path": path})
            raise BlobForbidden(f"Write forbidden for {path}: {message}", path, code)
        if code == 429 or code >= 500:
            raise UpstreamUnavailable(f"GitHub error {code}: {message}", {"path": path})
        raise BlobStoreError(f"GitHub error {code} for {path}: {message}", path, code)

    async def _get_git_blob(self, target: StorageTarget, sha: str, path: str) -> bytes:
        url = f"{self.api_url}/repos/{target.owner}/{target.repo}/git/blobs/{sha}"
        response = await self._request("GET", url, path)
        return base64.b64decode(response.json()["content"])

    async def get(self, target: StorageTarget, path: str, revision: Optional[str] = None) -> Blob:
        if revision:
            content = await self._get_git_blob(target, revision, path)
            return Blob(path=path, content=content, revision=revision)

        response = await self._request(
            "GET", self._contents_url(target, path), path, params={"ref": target.branch}
        )
        data = response.json()
        if isinstance(data, list):
            raise BlobStoreError(f"{path} is a directory", path)

        sha = data["sha"]
        if data.get("encoding") == "base64" and data.get("content"):
            content = base64.b64decode(data["content"])
        else:
            # Files over 1MB come back without inline content
            content = await self._get_git_blob(target, sha, path)
        return Blob(path=path, content=content, revision=sha)

    async def put(
        self,
        target: StorageTarget,
        path: str,
        content: bytes,
        message: str,
        expected_revision: Optional[str] = None,
    ) -> str:
        payload = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": target.branch,
        }
        if expected_revision:
            payload["sha"] = expected_revision

        response = await self._request("PUT", self._contents_url(target, path), path, json=payload)
        revision = response.json()["content"]["sha"]
        logger.debug(f"[GitHub] Wrote {path} to {target} ({len(content)} bytes)")
        return revision

    async def create_repository(self, name: str) -> StorageTarget:
        response = await self._request(
            "POST",
            f"{self.api_url}/user/repos",
            name,
            json={
                "name": name,
                "private": True,
                "description": "FanAI celebrity and generation storage",
                "auto_init": True,
            },
        )
        data = response.json()
        target = StorageTarget(
            owner=data["owner"]["login"],
            repo=data["name"],
            branch=data.get("default_branch") or "main",
        )
        logger.info(f"[GitHub] Created repository: {target}")
        return target

    async def close(self):
        await self.client.aclose()


class LocalBlobStore(BlobStoreClient):
    """
    Filesystem blob store with the same semantics as the GitHub backend.

    Layout: {root}/{owner}/{repo}/{branch}/{path}; every written revision is
    also kept under {root}/.objects/{revision}.
    """

    def __init__(self, root: str, max_repository_bytes: Optional[int] = None):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.objects = self.root / ".objects"
        self.objects.mkdir(exist_ok=True)
        self.max_repository_bytes = max_repository_bytes

    def _repo_dir(self, target: StorageTarget) -> Path:
        return self.root / target.owner / target.repo / target.branch

    def _file(self, target: StorageTarget, path: str) -> Path:
        return self._repo_dir(target) / path

    def _repository_size(self, target: StorageTarget) -> int:
        repo_dir = self._repo_dir(target)
        if not repo_dir.exists():
            return 0
        return sum(p.stat().st_size for p in repo_dir.rglob("*") if p.is_file())

    async def get(self, target: StorageTarget, path: str, revision: Optional[str] = None) -> Blob:
        if revision:
            obj = self.objects / revision
            if not obj.exists():
                raise BlobNotFound(f"Revision not found: {revision}", path, 404)
            return Blob(path=path, content=obj.read_bytes(), revision=revision)

        file_path = self._file(target, path)
        if not file_path.is_file():
            raise BlobNotFound(f"Not found: {path}", path, 404)
        content = file_path.read_bytes()
        return Blob(path=path, content=content, revision=blob_revision(content))

    async def put(
        self,
        target: StorageTarget,
        path: str,
        content: bytes,
        message: str,
        expected_revision: Optional[str] = None,
    ) -> str:
        file_path = self._file(target, path)
        if file_path.exists():
            current = blob_revision(file_path.read_bytes())
            if expected_revision != current:
                raise BlobConflict(f"Revision conflict on {path}", path, 409)
        elif expected_revision:
            raise BlobConflict(f"Revision conflict on {path}: blob does not exist", path, 409)

        if self.max_repository_bytes is not None:
            if self._repository_size(target) + len(content) > self.max_repository_bytes:
                raise BlobValidationFailed(f"Repository size limit exceeded for {target}", path, 422)

        revision = blob_revision(content)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "wb") as f:
            f.write(content)
        with open(self.objects / revision, "wb") as f:
            f.write(content)
        logger.debug(f"[LocalBlob] {message}: {target}/{path}")
        return revision

    async def create_repository(self, name: str) -> StorageTarget:
        target = StorageTarget(owner="local", repo=name, branch="main")
        self._repo_dir(target).mkdir(parents=True, exist_ok=True)
        logger.info(f"[LocalBlob] Created repository: {target}")
        return target


class StorageTargetRegistry:
    """
    Active storage target plus the retired ones, persisted to a JSON file.

    Rotation appends a new repository and makes it active. Retired targets
    stay readable.
    """

    def __init__(self, state_file: str, default: StorageTarget, repo_prefix: str = "fan-ai-celebs"):
        self.state_file = Path(state_file)
        self.default = default
        self.repo_prefix = repo_prefix
        self._targets: List[StorageTarget] = self._load()
        self._lock = asyncio.Lock()

    def _load(self) -> List[StorageTarget]:
        if self.state_file.exists():
            try:
                data = json.loads(self.state_file.read_text())
                targets = [StorageTarget.from_dict(t) for t in data.get("targets", [])]
                if targets:
                    return targets
            except (ValueError, KeyError) as e:
                logger.error(f"[Storage] Unreadable target file {self.state_file}: {e}")
        return [self.default]

    def _save(self):
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        payload = {"targets": [t.to_dict() for t in self._targets]}
        tmp = self.state_file.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, indent=2))
        tmp.replace(self.state_file)

    @property
    def active(self) -> StorageTarget:
        return self._targets[-1]

    def targets(self) -> List[StorageTarget]:
        """All known targets, active first."""
        return list(reversed(self._targets))

    async def rotate(self, client: BlobStoreClient, failed: StorageTarget) -> StorageTarget:
        """
        Switch to a new repository after failed refused a write.

        If another writer already rotated away from failed, the current active
        target is returned unchanged.
        """
        async with self._lock:
            if self.active != failed:
                return self.active
            name = f"{self.repo_prefix}-{int(time.time() * 1000)}"
            target = await client.create_repository(name)
            self._targets.append(target)
            self._save()
        logger.warning(f"[Storage] Rotated storage target {failed} -> {target}")
        return target


__all__ = [
    "StorageTarget",
    "Blob",
    "blob_revision",
    "BlobStoreClient",
    "GitHubBlobStore",
    "LocalBlobStore",
    "StorageTargetRegistry",
]
