"""Tests for acquisition: retries, safe extraction and local walking."""

from pathlib import Path

import httpx
import pytest

from conftest import make_tar, write_files

from agent_fabric.audit import AuditTrail, MemoryAuditSink
from agent_fabric.exceptions import (
    ArchiveError,
    NetworkError,
    OriginNotFoundError,
    PathSecurityViolation,
)
from agent_fabric.fetcher import Acquirer, RetryConfig, create_client
from agent_fabric.fetcher.archive import extract_archive, is_unsafe_member_name, safe_join
from agent_fabric.fetcher.download import fetch_with_retry
from agent_fabric.fetcher.local import is_excluded, read_source_files
from agent_fabric.source import parse_source


def _acquirer(tmp_path: Path, handler, sleeps: list[float] | None = None, **kwargs) -> Acquirer:
    sleeps = sleeps if sleeps is not None else []
    return Acquirer(
        cache_dir=tmp_path / "cache",
        client=create_client(httpx.MockTransport(handler)),
        sleep=sleeps.append,
        **kwargs,
    )


POISONED_TAR = make_tar(
    {
        "acme-kit-abc123/skills/review/SKILL.md": b"---\nname: review\n---\n",
        "acme-kit-abc123/README.md": b"# kit\n",
        "acme-kit-abc123/../outside.txt": b"escaped",
        "/abs/evil.txt": b"absolute",
    }
)


class TestRetry:
    """Tests for fetch_with_retry."""

    def test_retries_transient_failures_with_backoff(self):
        """Test that 5xx responses are retried with exponential delays."""
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, content=b"ok")

        sleeps: list[float] = []
        response = fetch_with_retry(
            create_client(httpx.MockTransport(handler)),
            "https://example.com/x",
            what="x",
            retry=RetryConfig(max_retries=3, delay=1.0, backoff=2.0),
            sleep=sleeps.append,
        )

        assert response.content == b"ok"
        assert len(calls) == 3
        assert sleeps == [1.0, 2.0]

    def test_exhausted_retries_raise_network_error(self):
        """Test that the attempt cap is respected."""
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError, match="after 3 attempts"):
            fetch_with_retry(
                create_client(httpx.MockTransport(handler)),
                "https://example.com/x",
                what="x",
                retry=RetryConfig(max_retries=2, delay=0.5),
                sleep=lambda _: None,
            )
        assert len(calls) == 3

    def test_not_found_is_not_retried(self):
        """Test that 404 fails immediately."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        with pytest.raises(OriginNotFoundError):
            fetch_with_retry(
                create_client(httpx.MockTransport(handler)),
                "https://example.com/x",
                what="x",
                sleep=lambda _: None,
            )
        assert len(calls) == 1

    def test_client_error_is_not_retried(self):
        """Test that a 403 surfaces as NetworkError without retries."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403)

        with pytest.raises(NetworkError, match="HTTP 403"):
            fetch_with_retry(
                create_client(httpx.MockTransport(handler)),
                "https://example.com/x",
                what="x",
                sleep=lambda _: None,
            )
        assert len(calls) == 1


class TestSafeExtraction:
    """Archive entries can never land outside the staging root."""

    @pytest.mark.parametrize(
        "name", ["../outside.txt", "a/../../b", "/etc/passwd", "C:/x", "a\\..\\b"]
    )
    def test_unsafe_names(self, name):
        assert is_unsafe_member_name(name)

    def test_safe_name(self):
        assert not is_unsafe_member_name("kit/skills/review/SKILL.md")

    def test_safe_join_rejects_escape(self, tmp_path: Path):
        """Test that symlinked escapes are caught after resolution."""
        root = tmp_path / "stage"
        root.mkdir()
        (root / "link").symlink_to(tmp_path)
        with pytest.raises(PathSecurityViolation):
            safe_join(root, "link/outside.txt")
        with pytest.raises(PathSecurityViolation):
            safe_join(root, ".")
        assert safe_join(root, "a/b.txt") == root.resolve() / "a" / "b.txt"

    def test_extract_skips_poisoned_entries(self, tmp_path: Path):
        """Test that safe entries are extracted and unsafe ones become warnings."""
        dest = tmp_path / "out"
        warnings = extract_archive(POISONED_TAR, dest)

        assert len(warnings) == 2
        assert (dest / "acme-kit-abc123" / "README.md").read_bytes() == b"# kit\n"
        assert not (tmp_path / "outside.txt").exists()
        assert not (dest / "outside.txt").exists()

    def test_not_an_archive(self, tmp_path: Path):
        with pytest.raises(ArchiveError):
            extract_archive(b"definitely not a tarball", tmp_path / "out")


class TestAcquirer:
    """Tests for Acquirer.acquire."""

    def test_remote_archive_is_staged_without_wrapper_dir(self, tmp_path: Path):
        """Test that a GitHub tarball is stripped of its top directory and staged."""
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, content=POISONED_TAR)

        sink = MemoryAuditSink()
        acquirer = _acquirer(tmp_path, handler, audit=AuditTrail(sink))
        result = acquirer.acquire(parse_source("acme/kit"))

        assert requested == ["https://api.github.com/repos/acme/kit/tarball/main"]
        assert result.local_dir == tmp_path / "cache" / "github" / "acme" / "kit" / "main"
        assert sorted(f.path for f in result.files) == ["README.md", "skills/review/SKILL.md"]
        assert (result.local_dir / "skills" / "review" / "SKILL.md").exists()
        assert len(result.warnings) == 2
        assert len(sink.by_outcome("warning")) == 2
        assert sink.by_outcome("success")[0].action == "acquire"

    def test_subpath_selects_directory(self, tmp_path: Path):
        """Test that /tree/<ref>/<subpath> stages only the subpath."""
        acquirer = _acquirer(tmp_path, lambda request: httpx.Response(200, content=POISONED_TAR))
        result = acquirer.acquire(parse_source("https://github.com/acme/kit/tree/v1/skills"))
        assert [f.path for f in result.files] == ["review/SKILL.md"]

    def test_missing_subpath(self, tmp_path: Path):
        acquirer = _acquirer(tmp_path, lambda request: httpx.Response(200, content=POISONED_TAR))
        with pytest.raises(OriginNotFoundError):
            acquirer.acquire(parse_source("https://github.com/acme/kit/tree/v1/nope"))

    def test_failed_refetch_keeps_previous_staging(self, tmp_path: Path):
        """Test that a corrupt archive on the second fetch leaves the staged tree intact."""
        bodies = [POISONED_TAR, b"this is not a tarball"]
        acquirer = _acquirer(tmp_path, lambda request: httpx.Response(200, content=bodies.pop(0)))
        first = acquirer.acquire(parse_source("acme/kit"))

        with pytest.raises(ArchiveError):
            acquirer.acquire(parse_source("acme/kit"))

        assert (first.local_dir / "skills" / "review" / "SKILL.md").exists()
        assert sorted(p.name for p in first.local_dir.parent.iterdir()) == ["main"]

    def test_refetch_replaces_stale_files(self, tmp_path: Path):
        bodies = [POISONED_TAR, make_tar({"kit-main/rules/style.md": b"# Style\n"})]
        acquirer = _acquirer(tmp_path, lambda request: httpx.Response(200, content=bodies.pop(0)))
        acquirer.acquire(parse_source("acme/kit"))

        result = acquirer.acquire(parse_source("acme/kit"))

        assert [f.path for f in result.files] == ["rules/style.md"]
        assert not (result.local_dir / "README.md").exists()
        assert sorted(p.name for p in result.local_dir.parent.iterdir()) == ["main"]

    def test_npm_package_resolves_latest_tarball(self, tmp_path: Path):
        """Test that npm packages are resolved through dist-tags.latest."""
        tarball = make_tar({"package/rules/style.md": b"# Style\n"})

        def handler(request):
            if request.url.host == "registry.npmjs.org" and request.url.path.startswith("/@acme"):
                return httpx.Response(
                    200,
                    json={
                        "dist-tags": {"latest": "1.2.0"},
                        "versions": {
                            "1.2.0": {"dist": {"tarball": "https://cdn.example.com/rules-1.2.0.tgz"}}
                        },
                    },
                )
            if str(request.url) == "https://cdn.example.com/rules-1.2.0.tgz":
                return httpx.Response(200, content=tarball)
            return httpx.Response(404)

        result = _acquirer(tmp_path, handler).acquire(parse_source("@acme/rules"))
        assert [f.path for f in result.files] == ["rules/style.md"]

    def test_registry_resource_uses_download_url(self, tmp_path: Path):
        """Test that registry: ids are resolved through the registry API."""
        tarball = make_tar({"bundle/skills/x/SKILL.md": b"# x\n"})

        def handler(request):
            if request.url.path == "/resources/frontend-kit":
                return httpx.Response(200, json={"downloadUrl": "https://dl.example.com/fk.tgz"})
            if request.url.host == "dl.example.com":
                return httpx.Response(200, content=tarball)
            return httpx.Response(404)

        acquirer = _acquirer(tmp_path, handler, registry_url="https://registry.example.com/")
        result = acquirer.acquire(parse_source("registry:frontend-kit"))
        assert [f.path for f in result.files] == ["skills/x/SKILL.md"]

    def test_registry_without_download_url(self, tmp_path: Path):
        acquirer = _acquirer(tmp_path, lambda request: httpx.Response(200, json={}))
        with pytest.raises(NetworkError):
            acquirer.acquire(parse_source("registry:frontend-kit"))

    def test_local_directory_is_read_in_place(self, tmp_path: Path):
        """Test that local sources skip the network and apply excludes."""
        root = write_files(
            tmp_path / "src",
            {
                "skills/a/SKILL.md": "# a\n",
                "node_modules/pkg/index.js": "x",
                "debug.log": "x",
                ".env.local": "SECRET=1",
            },
        )

        def handler(request):
            raise AssertionError("local sources must not hit the network")

        result = _acquirer(tmp_path, handler).acquire(parse_source(str(root)))
        assert result.local_dir == root.resolve()
        assert [f.path for f in result.files] == ["skills/a/SKILL.md"]

    def test_missing_local_directory(self, tmp_path: Path):
        acquirer = _acquirer(tmp_path, lambda request: httpx.Response(500))
        with pytest.raises(OriginNotFoundError):
            acquirer.acquire(parse_source(str(tmp_path / "missing")))


class TestLocalWalk:
    """Tests for the exclude deny-list."""

    @pytest.mark.parametrize("name", ["node_modules", ".git", "x.log", ".env", ".env.prod"])
    def test_excluded(self, name):
        assert is_excluded(name)

    @pytest.mark.parametrize("name", ["SKILL.md", "environment.md", "logs"])
    def test_not_excluded(self, name):
        assert not is_excluded(name)

    def test_symlinks_are_not_followed(self, tmp_path: Path):
        """Test that symlinked files are left out of the walk."""
        root = write_files(tmp_path / "src", {"a.md": "a"})
        (tmp_path / "secret.txt").write_text("secret")
        (root / "leak.txt").symlink_to(tmp_path / "secret.txt")
        assert [f.path for f in read_source_files(root)] == ["a.md"]
