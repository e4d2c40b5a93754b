"""Audit trail for filesystem-touching operations.

Every install, removal and state mutation emits an AuditRecord to a sink.
The sink is handed to each component when it is constructed; there is no
process-wide logger. Absolute paths are rewritten relative to the project
root, the global root or the home directory before a record leaves this
module, so audit output can be shared between machines.
"""

import getpass
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from rich.console import Console

logger = logging.getLogger(__name__)

PROJECT_ROOT_TOKEN = "<PROJECT_ROOT>"
GLOBAL_ROOT_TOKEN = "<GLOBAL_ROOT>"
HOME_TOKEN = "<HOME>"


def utc_now() -> str:
    """Current time as an ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AuditRecord:
    """One audited action."""

    timestamp: str
    actor_id: str
    action: str
    resource_name: str
    resource_kind: str
    outcome: str  # "success", "failure" or "warning"
    target_path: str | None = None
    details: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "timestamp": self.timestamp,
            "actorId": self.actor_id,
            "action": self.action,
            "resourceName": self.resource_name,
            "resourceKind": self.resource_kind,
            "outcome": self.outcome,
        }
        if self.target_path is not None:
            data["targetPath"] = self.target_path
        if self.details:
            data["details"] = self.details
        if self.error is not None:
            data["error"] = self.error
        return data


@runtime_checkable
class AuditSink(Protocol):
    """Write-only destination for audit records."""

    def emit(self, record: AuditRecord) -> None:
        ...


class NullAuditSink:
    """Discards every record."""

    def emit(self, record: AuditRecord) -> None:
        pass


@dataclass
class MemoryAuditSink:
    """Keeps records in a list, mainly for tests and summaries."""

    records: list[AuditRecord] = field(default_factory=list)

    def emit(self, record: AuditRecord) -> None:
        self.records.append(record)

    def by_outcome(self, outcome: str) -> list[AuditRecord]:
        return [r for r in self.records if r.outcome == outcome]


class ConsoleAuditSink:
    """Prints `[AUDIT] {json}` lines to stderr."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def emit(self, record: AuditRecord) -> None:
        self.console.print(
            f"[AUDIT] {json.dumps(record.to_dict())}",
            markup=False,
            highlight=False,
            soft_wrap=True,
        )


class FileAuditSink:
    """Appends records to a JSON-lines file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def emit(self, record: AuditRecord) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record.to_dict()) + "\n")


def _default_actor() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USER") or os.environ.get("USERNAME") or "unknown"


class AuditTrail:
    """Builds, redacts and emits audit records.

    Args:
        sink: Where records go
        project_root: Project directory, rewritten to <PROJECT_ROOT>
        global_root: Root for global installs, rewritten to <GLOBAL_ROOT>
        actor_id: Who performed the action, defaults to the OS user
    """

    def __init__(
        self,
        sink: AuditSink | None = None,
        project_root: Path | None = None,
        global_root: Path | None = None,
        actor_id: str | None = None,
    ) -> None:
        self.sink = sink or NullAuditSink()
        self.project_root = project_root.resolve() if project_root else None
        self.global_root = global_root.expanduser().resolve() if global_root else None
        self.home = Path.home().resolve()
        self.actor_id = actor_id or _default_actor()

    def redact_path(self, path: str | Path) -> str:
        """Rewrite an absolute path relative to the most specific known root.

        Relative paths are returned unchanged. Absolute paths outside every
        known root keep only their final component.
        """
        candidate = Path(path)
        if not candidate.is_absolute():
            return str(path)
        try:
            resolved = candidate.resolve()
        except OSError:
            resolved = candidate

        roots = [
            (self.project_root, PROJECT_ROOT_TOKEN),
            (self.global_root, GLOBAL_ROOT_TOKEN),
            (self.home, HOME_TOKEN),
        ]
        # Most specific root wins when one root contains another
        roots = [(root, token) for root, token in roots if root is not None]
        roots.sort(key=lambda item: len(item[0].parts), reverse=True)
        for root, token in roots:
            for base in (resolved, candidate):
                if base == root:
                    return token
                if base.is_relative_to(root):
                    return f"{token}/{base.relative_to(root).as_posix()}"
        return f"<EXTERNAL>/{candidate.name}"

    def _redact_value(self, key: str, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: self._redact_value(k, v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._redact_value(key, v) for v in value]
        if isinstance(value, Path):
            return self.redact_path(value)
        if isinstance(value, str) and ("path" in key.lower() or os.path.isabs(value)):
            return self.redact_path(value)
        return value

    def redact_details(self, details: dict[str, Any] | None) -> dict[str, Any] | None:
        if details is None:
            return None
        return {k: self._redact_value(k, v) for k, v in details.items()}

    def redact_message(self, message: str | None) -> str | None:
        if message is None:
            return None
        for root, token in (
            (self.project_root, PROJECT_ROOT_TOKEN),
            (self.global_root, GLOBAL_ROOT_TOKEN),
            (self.home, HOME_TOKEN),
        ):
            if root is not None:
                message = message.replace(str(root), token)
        return message

    def emit(
        self,
        action: str,
        resource_name: str,
        resource_kind: str,
        outcome: str,
        target_path: str | Path | None = None,
        details: dict[str, Any] | None = None,
        error: str | BaseException | None = None,
    ) -> AuditRecord:
        """Build a redacted record and hand it to the sink.

        Sink failures are logged and swallowed; auditing never fails the
        operation it describes.
        """
        record = AuditRecord(
            timestamp=utc_now(),
            actor_id=self.actor_id,
            action=action,
            resource_name=resource_name,
            resource_kind=resource_kind,
            outcome=outcome,
            target_path=self.redact_path(target_path) if target_path is not None else None,
            details=self.redact_details(details),
            error=self.redact_message(str(error)) if error is not None else None,
        )
        try:
            self.sink.emit(record)
        except Exception:
            logger.debug("Audit sink %r failed", self.sink, exc_info=True)
        return record

    def success(self, action: str, resource_name: str, resource_kind: str, **kwargs: Any) -> AuditRecord:
        return self.emit(action, resource_name, resource_kind, "success", **kwargs)

    def failure(self, action: str, resource_name: str, resource_kind: str, **kwargs: Any) -> AuditRecord:
        return self.emit(action, resource_name, resource_kind, "failure", **kwargs)

    def warning(self, action: str, resource_name: str, resource_kind: str, **kwargs: Any) -> AuditRecord:
        return self.emit(action, resource_name, resource_kind, "warning", **kwargs)
