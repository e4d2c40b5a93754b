"""Source string classification for agent_fabric.

Every `add` starts here: a user-supplied source string is turned into an
immutable OriginDescriptor that the Acquirer knows how to fetch.

| Input                                         | Kind            |
|-----------------------------------------------|-----------------|
| `./skills`, `../x`, `/abs/path`, `~/dotfiles` | local           |
| `https://github.com/o/r/tree/dev/sub`         | remote-archive  |
| `https://gitlab.com/o/r/-/tree/dev/sub`       | remote-archive  |
| `https://example.com/pack.tar.gz`             | url-archive     |
| `owner/repo`                                  | remote-archive  |
| `registry:frontend-kit`                       | registry        |
| `npm:pkg`, `@scope/pkg`                       | registry (npm)  |

Classification is pure: no filesystem or network access.
"""

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote

from agent_fabric.constants import (
    DEFAULT_REF,
    DEFAULT_REGISTRY_URL,
    GITHUB_API_BASE,
    GITLAB_API_BASE,
    NPM_REGISTRY_URL,
)
from agent_fabric.exceptions import SourceError


class OriginKind(Enum):
    """How a source is acquired."""

    REMOTE_ARCHIVE = "remote-archive"
    URL_ARCHIVE = "url-archive"
    LOCAL = "local"
    REGISTRY = "registry"


GITHUB_URL_PATTERN = re.compile(
    r"^https?://github\.com/([^/]+)/([^/#?]+?)(?:\.git)?(?:/tree/([^/]+)(?:/(.+?))?)?/?$"
)
GITLAB_URL_PATTERN = re.compile(
    r"^https?://gitlab\.com/([^/]+)/([^/#?]+?)(?:\.git)?(?:/-/tree/([^/]+)(?:/(.+?))?)?/?$"
)
# owner/name[/path][@ref]
SHORTHAND_PATTERN = re.compile(
    r"^([A-Za-z0-9][A-Za-z0-9_.-]*)/([A-Za-z0-9_.-]+)((?:/[^/@\s]+)*)/?(?:@([^@\s]+))?$"
)

LOCAL_PREFIXES = ("./", "../", "/", "~/")


@dataclass(frozen=True)
class OriginDescriptor:
    """A classified source.

    Attributes:
        kind: How the source is acquired
        raw: The original source string
        owner: Account name for remote archives
        name: Repository name for remote archives
        ref: Branch, tag or commit, None means the default branch
        subpath: Directory inside the archive to use as the root
        provider: "github" or "gitlab" for remote archives
        url: Archive URL for url-archive sources
        path: Filesystem path for local sources
        registry_id: Package or resource id for registry sources
        registry: "npm" or "fabric" for registry sources
    """

    kind: OriginKind
    raw: str
    owner: str | None = None
    name: str | None = None
    ref: str | None = None
    subpath: str | None = None
    provider: str | None = None
    url: str | None = None
    path: str | None = None
    registry_id: str | None = None
    registry: str | None = None

    @property
    def is_local(self) -> bool:
        return self.kind == OriginKind.LOCAL

    @property
    def display_name(self) -> str:
        """Short human-readable label used in messages and the state file."""
        if self.kind == OriginKind.REMOTE_ARCHIVE:
            label = f"{self.owner}/{self.name}"
            if self.subpath:
                label = f"{label}/{self.subpath}"
            if self.ref:
                label = f"{label}@{self.ref}"
            return label
        if self.kind == OriginKind.URL_ARCHIVE:
            return self.url or self.raw
        if self.kind == OriginKind.LOCAL:
            return self.path or self.raw
        if self.registry == "npm":
            return f"npm:{self.registry_id}"
        return f"registry:{self.registry_id}"

    @property
    def origin_url(self) -> str:
        """Canonical URL for the origin, recorded alongside installs."""
        if self.kind == OriginKind.REMOTE_ARCHIVE:
            if self.provider == "gitlab":
                base = f"https://gitlab.com/{self.owner}/{self.name}"
                if self.ref:
                    base = f"{base}/-/tree/{self.ref}"
            else:
                base = f"https://github.com/{self.owner}/{self.name}"
                if self.ref:
                    base = f"{base}/tree/{self.ref}"
            if self.ref and self.subpath:
                base = f"{base}/{self.subpath}"
            return base
        if self.kind == OriginKind.URL_ARCHIVE:
            return self.url or self.raw
        if self.kind == OriginKind.LOCAL:
            return f"file://{self.path}"
        if self.registry == "npm":
            return f"{NPM_REGISTRY_URL}/{self.registry_id}"
        return f"{DEFAULT_REGISTRY_URL}/resources/{self.registry_id}"

    def archive_url(self) -> str:
        """Tarball URL for remote-archive sources.

        Raises:
            SourceError: If the descriptor is not a remote archive
        """
        if self.kind != OriginKind.REMOTE_ARCHIVE:
            raise SourceError(f"'{self.raw}' is not a remote archive source")
        ref = self.ref or DEFAULT_REF
        if self.provider == "gitlab":
            project = quote(f"{self.owner}/{self.name}", safe="")
            return f"{GITLAB_API_BASE}/projects/{project}/repository/archive.tar.gz?sha={quote(ref, safe='')}"
        return f"{GITHUB_API_BASE}/repos/{self.owner}/{self.name}/tarball/{ref}"


def _remote(raw: str, match: re.Match, provider: str) -> OriginDescriptor:
    owner, name, ref, subpath = match.groups()
    return OriginDescriptor(
        kind=OriginKind.REMOTE_ARCHIVE,
        raw=raw,
        owner=owner,
        name=name,
        ref=ref,
        subpath=subpath.strip("/") if subpath else None,
        provider=provider,
    )


def parse_source(source: str) -> OriginDescriptor:
    """Classify a source string.

    Args:
        source: Source as typed by the user

    Returns:
        OriginDescriptor for the source

    Raises:
        SourceError: If the source is empty

    Examples:
        >>> parse_source("./my-skills").kind
        <OriginKind.LOCAL: 'local'>
        >>> parse_source("vercel/agent-skills").owner
        'vercel'
        >>> parse_source("@acme/rules").registry
        'npm'
    """
    raw = source
    source = source.strip()
    if not source:
        raise SourceError("Source cannot be empty")

    if source.startswith(LOCAL_PREFIXES) or source in (".", ".."):
        return OriginDescriptor(kind=OriginKind.LOCAL, raw=raw, path=source)

    if source.startswith(("http://", "https://")):
        match = GITHUB_URL_PATTERN.match(source)
        if match:
            return _remote(raw, match, "github")
        match = GITLAB_URL_PATTERN.match(source)
        if match:
            return _remote(raw, match, "gitlab")
        return OriginDescriptor(kind=OriginKind.URL_ARCHIVE, raw=raw, url=source)

    match = SHORTHAND_PATTERN.match(source)
    if match:
        owner, name, subpath, ref = match.groups()
        return OriginDescriptor(
            kind=OriginKind.REMOTE_ARCHIVE,
            raw=raw,
            owner=owner,
            name=name,
            ref=ref,
            subpath=subpath.strip("/") or None,
            provider="github",
        )

    if source.startswith("registry:"):
        return OriginDescriptor(
            kind=OriginKind.REGISTRY,
            raw=raw,
            registry_id=source[len("registry:"):],
            registry="fabric",
        )
    if source.startswith("npm:"):
        return OriginDescriptor(
            kind=OriginKind.REGISTRY,
            raw=raw,
            registry_id=source[len("npm:"):],
            registry="npm",
        )
    if source.startswith("@"):
        return OriginDescriptor(
            kind=OriginKind.REGISTRY, raw=raw, registry_id=source, registry="npm"
        )

    # Anything else is reported back as owner/name so callers always get
    # the same descriptor shape; acquisition will fail with a clear error.
    ref = None
    if "@" in source[1:]:
        source, ref = source.rsplit("@", 1)
    parts = source.split("/")
    owner = parts[0]
    name = parts[1] if len(parts) > 1 else ""
    subpath = "/".join(parts[2:]) or None
    return OriginDescriptor(
        kind=OriginKind.REMOTE_ARCHIVE,
        raw=raw,
        owner=owner,
        name=name,
        ref=ref or None,
        subpath=subpath,
        provider="github",
    )
