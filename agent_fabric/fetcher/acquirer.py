"""Acquisition of classified origins into a local staging directory."""

import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable
from urllib.parse import quote, urlparse
from uuid import uuid4

import httpx

from agent_fabric.audit import AuditTrail, utc_now
from agent_fabric.constants import CACHE_DIR_NAME, DEFAULT_REF, DEFAULT_REGISTRY_URL, NPM_REGISTRY_URL
from agent_fabric.exceptions import NetworkError, OriginNotFoundError, SourceError
from agent_fabric.fetcher.archive import archive_root, extract_archive, stage_tree
from agent_fabric.fetcher.download import RetryConfig, create_client, fetch_json, fetch_with_retry
from agent_fabric.fetcher.local import read_source_files
from agent_fabric.fetcher.types import AcquireMetadata, AcquireResult
from agent_fabric.naming import sanitize_name
from agent_fabric.source import OriginDescriptor, OriginKind

logger = logging.getLogger(__name__)


def default_cache_dir() -> Path:
    return Path(tempfile.gettempdir()) / CACHE_DIR_NAME


def replace_directory(existing_dir: Path, staged_dir: Path) -> None:
    """Swap a fully staged directory into place.

    The old directory is moved aside first and restored if the swap fails.
    """
    if not existing_dir.exists():
        os.replace(staged_dir, existing_dir)
        return
    backup_dir = existing_dir.parent / f".{existing_dir.name}.backup-{uuid4().hex}"
    os.replace(existing_dir, backup_dir)
    try:
        os.replace(staged_dir, existing_dir)
    except OSError:
        os.replace(backup_dir, existing_dir)
        raise
    shutil.rmtree(backup_dir)


class Acquirer:
    """Fetches origins and stages their files locally.

    Remote origins are downloaded with retry, extracted into a temporary
    directory and copied into `<cache_dir>/<provider>/...`. Local origins
    are read in place.

    Args:
        cache_dir: Root for staging directories
        client: HTTP client, created on first use when omitted
        retry: Retry policy for every network request
        sleep: Sleep function used between retries
        audit: Audit trail for acquisition records
        registry_url: Base URL of the resource registry
        npm_registry_url: Base URL of the npm registry
    """

    def __init__(
        self,
        cache_dir: Path | None = None,
        client: httpx.Client | None = None,
        retry: RetryConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
        audit: AuditTrail | None = None,
        registry_url: str = DEFAULT_REGISTRY_URL,
        npm_registry_url: str = NPM_REGISTRY_URL,
    ) -> None:
        self.cache_dir = cache_dir or default_cache_dir()
        self._client = client
        self._owns_client = client is None
        self.retry = retry or RetryConfig()
        self.sleep = sleep
        self.audit = audit or AuditTrail()
        self.registry_url = registry_url.rstrip("/")
        self.npm_registry_url = npm_registry_url.rstrip("/")

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = create_client()
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "Acquirer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def acquire(self, descriptor: OriginDescriptor) -> AcquireResult:
        """Fetch an origin and return its staged files.

        Args:
            descriptor: Classified origin

        Returns:
            AcquireResult with the staging directory and every staged file

        Raises:
            OriginNotFoundError: If the origin doesn't exist
            NetworkError: If a download keeps failing
            ArchiveError: If the download isn't a tar archive
        """
        if descriptor.kind == OriginKind.LOCAL:
            result = self._acquire_local(descriptor)
        elif descriptor.kind == OriginKind.REMOTE_ARCHIVE:
            if not descriptor.owner or not descriptor.name:
                raise SourceError(
                    f"Cannot fetch '{descriptor.raw}': expected <owner>/<repo>"
                )
            result = self._acquire_archive(
                descriptor,
                descriptor.archive_url(),
                self._remote_staging_dir(descriptor),
                subpath=descriptor.subpath,
            )
        elif descriptor.kind == OriginKind.URL_ARCHIVE:
            result = self._acquire_archive(
                descriptor, descriptor.url or descriptor.raw, self._url_staging_dir(descriptor)
            )
        else:
            url = self._resolve_registry_tarball(descriptor)
            staging = self.cache_dir / (
                "npm" if descriptor.registry == "npm" else "registry"
            ) / sanitize_name(descriptor.registry_id or "unknown")
            result = self._acquire_archive(descriptor, url, staging)

        for warning in result.warnings:
            self.audit.warning(
                "acquire",
                descriptor.display_name,
                "source",
                target_path=result.local_dir,
                details={"warning": warning},
            )
        self.audit.success(
            "acquire",
            descriptor.display_name,
            "source",
            target_path=result.local_dir,
            details={"fileCount": result.file_count, "originKind": descriptor.kind.value},
        )
        return result

    def clear_cache(self) -> None:
        """Remove every staged source."""
        if self.cache_dir.exists():
            shutil.rmtree(self.cache_dir)

    def _acquire_local(self, descriptor: OriginDescriptor) -> AcquireResult:
        path = Path(descriptor.path or descriptor.raw).expanduser().resolve()
        if not path.exists():
            raise OriginNotFoundError(f"Local path '{descriptor.path}' does not exist")
        if not path.is_dir():
            raise OriginNotFoundError(f"Local path '{descriptor.path}' is not a directory")
        files = read_source_files(path)
        return AcquireResult(
            descriptor=descriptor,
            local_dir=path,
            files=files,
            metadata=AcquireMetadata(
                downloaded_at=utc_now(),
                size=sum(len(f.content) for f in files),
                file_count=len(files),
            ),
        )

    def _acquire_archive(
        self,
        descriptor: OriginDescriptor,
        url: str,
        staging_dir: Path,
        subpath: str | None = None,
    ) -> AcquireResult:
        response = fetch_with_retry(
            self.client, url, what=descriptor.display_name, retry=self.retry, sleep=self.sleep
        )
        data = response.content

        # The previous staging tree stays in place until the new one is complete
        staging_dir.parent.mkdir(parents=True, exist_ok=True)
        staged = Path(tempfile.mkdtemp(prefix=f".{staging_dir.name}.staging-", dir=staging_dir.parent))
        try:
            with tempfile.TemporaryDirectory(prefix="agent-fabric-") as tmp_dir:
                extracted = Path(tmp_dir) / "extracted"
                warnings = extract_archive(data, extracted)
                root = archive_root(extracted, subpath)
                files, stage_warnings = stage_tree(root, staged)
            replace_directory(staging_dir, staged)
        except Exception:
            shutil.rmtree(staged, ignore_errors=True)
            raise

        logger.debug("Staged %d files from %s into %s", len(files), url, staging_dir)
        return AcquireResult(
            descriptor=descriptor,
            local_dir=staging_dir,
            files=files,
            metadata=AcquireMetadata(
                downloaded_at=utc_now(), size=len(data), file_count=len(files)
            ),
            warnings=warnings + stage_warnings,
        )

    def _remote_staging_dir(self, descriptor: OriginDescriptor) -> Path:
        parts = [
            descriptor.provider or "github",
            descriptor.owner or "",
            descriptor.name or "",
            descriptor.ref or DEFAULT_REF,
        ]
        return self.cache_dir.joinpath(*(sanitize_name(p) or "_" for p in parts))

    def _url_staging_dir(self, descriptor: OriginDescriptor) -> Path:
        parsed = urlparse(descriptor.url or descriptor.raw)
        label = f"{parsed.netloc}{parsed.path}"
        return self.cache_dir / "http" / (sanitize_name(label) or "archive")

    def _resolve_registry_tarball(self, descriptor: OriginDescriptor) -> str:
        """Look up the archive URL for a registry origin."""
        package = descriptor.registry_id or ""
        if not package:
            raise SourceError(f"Registry source '{descriptor.raw}' has no package id")

        if descriptor.registry == "npm":
            # Scoped names keep their @ but the slash is encoded
            url = f"{self.npm_registry_url}/{quote(package, safe='@')}"
            data = fetch_json(
                self.client, url, what=descriptor.display_name, retry=self.retry, sleep=self.sleep
            )
            latest = data.get("dist-tags", {}).get("latest")
            tarball = data.get("versions", {}).get(latest, {}).get("dist", {}).get("tarball")
            if not tarball:
                raise NetworkError(f"npm package '{package}' has no tarball for its latest version")
            return tarball

        url = f"{self.registry_url}/resources/{quote(package, safe='')}"
        data = fetch_json(
            self.client, url, what=descriptor.display_name, retry=self.retry, sleep=self.sleep
        )
        download_url = data.get("downloadUrl")
        if not download_url:
            raise NetworkError(f"Registry resource '{package}' has no downloadUrl")
        return download_url
