"""Orchestrator for coordinating the add / remove / rollback / list pipeline.

add:  classify -> acquire -> discover -> collision check -> validate
      -> install per target -> record in the state store

One item failing never stops the rest of the batch; only a state file
that can't be loaded aborts the whole call.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import httpx

from agent_fabric.audit import AuditTrail, ConsoleAuditSink, FileAuditSink, NullAuditSink, utc_now
from agent_fabric.config import FabricSettings
from agent_fabric.core.registry import ConsumerRegistry, HandlerRegistry
from agent_fabric.core.resource import (
    DiscoveredItem,
    InstallMode,
    InstallReport,
    InstallTarget,
    ListResult,
    RemoveReport,
    ResourceKind,
    Scope,
    TargetResult,
)
from agent_fabric.exceptions import AlreadyExistsError, FabricError, NotFoundError, ValidationError
from agent_fabric.fetcher.acquirer import Acquirer
from agent_fabric.fetcher.download import RetryConfig, create_client
from agent_fabric.fetcher.types import AcquireResult
from agent_fabric.handlers import register_builtin_handlers
from agent_fabric.naming import NamingStrategy, find_name_collisions
from agent_fabric.source import OriginDescriptor, parse_source
from agent_fabric.state.models import (
    HistoryEntry,
    InstalledRecord,
    InstallLocation,
    metadata_from_discovery,
)
from agent_fabric.state.store import StateStore

logger = logging.getLogger(__name__)


@dataclass
class ItemOutcome:
    """What happened to one discovered item during add."""

    name: str
    kind: str
    report: InstallReport | None = None
    error: Exception | None = None
    warnings: list[str] = field(default_factory=list)
    record: InstalledRecord | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.report is not None and self.report.success


@dataclass
class AddResult:
    """Result of an add call across every discovered item."""

    descriptor: OriginDescriptor
    acquisition: AcquireResult
    outcomes: list[ItemOutcome] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return list(self.acquisition.warnings)

    @property
    def installed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.report is not None and o.report.installed]

    @property
    def failed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def is_empty(self) -> bool:
        return not self.outcomes


def build_audit_trail(
    settings: FabricSettings, project_root: Path, global_root: Path | None = None
) -> AuditTrail:
    """Audit trail configured from the `audit` setting."""
    if settings.audit == "console":
        sink = ConsoleAuditSink()
    elif settings.audit == "off":
        sink = NullAuditSink()
    else:
        audit_path = Path(settings.audit).expanduser()
        if not audit_path.is_absolute():
            audit_path = project_root / audit_path
        sink = FileAuditSink(audit_path)
    return AuditTrail(sink, project_root=project_root, global_root=global_root or Path.home())


class Orchestrator:
    """Coordinates classification, acquisition, installation and state.

    Every collaborator is passed in; use Orchestrator.create() to build the
    default set from settings.
    """

    def __init__(
        self,
        project_root: Path,
        consumers: ConsumerRegistry,
        handlers: HandlerRegistry,
        store: StateStore,
        acquirer: Acquirer,
        audit: AuditTrail,
        settings: FabricSettings | None = None,
        global_root: Path | None = None,
    ) -> None:
        self.project_root = project_root
        self.consumers = consumers
        self.handlers = handlers
        self.store = store
        self.acquirer = acquirer
        self.audit = audit
        self.settings = settings or FabricSettings()
        self.global_root = global_root

    @classmethod
    def create(
        cls,
        project_root: Path,
        settings: FabricSettings | None = None,
        *,
        audit: AuditTrail | None = None,
        global_root: Path | None = None,
        naming_strategy: NamingStrategy | str | None = None,
        transport: httpx.BaseTransport | None = None,
        retry: RetryConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
        cache_dir: Path | None = None,
    ) -> "Orchestrator":
        """Build an orchestrator with the built-in consumers and handlers."""
        settings = settings or FabricSettings()
        audit = audit or build_audit_trail(settings, project_root, global_root)
        consumers = ConsumerRegistry.with_builtins()
        handlers = register_builtin_handlers(
            HandlerRegistry(),
            consumers,
            project_root,
            audit=audit,
            global_root=global_root,
            naming_strategy=naming_strategy or settings.naming_strategy,
        )
        store = StateStore.for_project(
            project_root, audit=audit, default_config=settings.state_config()
        )
        acquirer = Acquirer(
            cache_dir=cache_dir or settings.resolved_cache_dir(),
            client=create_client(transport) if transport is not None else None,
            retry=retry,
            sleep=sleep,
            audit=audit,
        )
        return cls(
            project_root,
            consumers,
            handlers,
            store,
            acquirer,
            audit,
            settings=settings,
            global_root=global_root,
        )

    def close(self) -> None:
        self.acquirer.close()

    def __enter__(self) -> "Orchestrator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # --- Targets ------------------------------------------------------------

    def build_targets(
        self,
        consumer_ids: list[str] | None = None,
        scope: Scope | None = None,
        mode: InstallMode | None = None,
    ) -> list[InstallTarget]:
        """Resolve install targets.

        Consumers come from the argument, then the preferred consumers in
        the state config, then detection, then the default consumer.
        """
        scope = scope or Scope(self.settings.default_scope)
        mode = mode or InstallMode(self.settings.install_mode)
        ids = list(consumer_ids or [])
        if not ids:
            ids = list(self.store.get_config().preferred_consumers)
        if not ids:
            ids = self.consumers.detect_installed(self.project_root, self.global_root)
        if not ids:
            ids = [self.consumers.default_id()]
        # Unknown ids fail loudly here instead of per item
        for consumer_id in ids:
            self.consumers.get(consumer_id)
        return [InstallTarget(consumer_id=cid, scope=scope, mode=mode) for cid in dict.fromkeys(ids)]

    # --- Pipeline -----------------------------------------------------------

    def add(
        self,
        source: str,
        kinds: list[str] | None = None,
        consumer_ids: list[str] | None = None,
        scope: Scope | None = None,
        mode: InstallMode | None = None,
        force: bool = False,
        only: list[str] | None = None,
    ) -> AddResult:
        """Install every matching item from a source.

        Args:
            source: Source string, see agent_fabric.source
            kinds: Resource kinds to discover, defaults to skills
            consumer_ids: Consumers to install into
            scope: Project or global
            mode: Copy or link
            force: Replace existing installs and ignore name collisions
            only: Restrict to items whose original or install name matches

        Returns:
            AddResult with one outcome per discovered item

        Raises:
            SourceError, OriginNotFoundError, NetworkError: If acquisition fails
            SchemaVersionMismatch, StateFileError: If the state can't be loaded
        """
        # Load up front so a broken state file aborts before anything is installed
        self.store.load()
        descriptor = parse_source(source)
        targets = self.build_targets(consumer_ids, scope, mode)
        acquisition = self.acquirer.acquire(descriptor)
        result = AddResult(descriptor=descriptor, acquisition=acquisition)
        logger.debug(
            "Acquired %d files from %s into %s",
            acquisition.file_count,
            descriptor.display_name,
            acquisition.local_dir,
        )

        for kind in kinds or [ResourceKind.SKILLS.value]:
            handler = self.handlers.get(kind)
            items = handler.discover(acquisition.local_dir)
            if only:
                wanted = set(only)
                items = [i for i in items if i.name in wanted or i.original_name in wanted]

            colliding: set[int] = set()
            if not force:
                for name, group in find_name_collisions(items).items():
                    for item in group:
                        colliding.add(id(item))
                        error = AlreadyExistsError(
                            f"{len(group)} {kind} resolve to the install name '{name}'; "
                            "choose another naming strategy or pass force"
                        )
                        self.audit.failure(
                            "install", name, kind, details={"sourcePath": item.metadata.get("sourcePath")},
                            error=error,
                        )
                        result.outcomes.append(ItemOutcome(name=name, kind=kind, error=error))

            for item in items:
                if id(item) in colliding:
                    continue
                result.outcomes.append(self._install_item(handler, item, targets, descriptor, force))

        return result

    def _install_item(
        self,
        handler,
        item: DiscoveredItem,
        targets: list[InstallTarget],
        descriptor: OriginDescriptor,
        force: bool,
    ) -> ItemOutcome:
        outcome = ItemOutcome(name=item.name or item.original_name, kind=handler.kind)
        outcome.warnings = handler.validate(item).warnings
        try:
            outcome.report = handler.install(item, targets, force=force)
        except ValidationError as e:
            outcome.error = e
            return outcome

        if outcome.report.installed:
            try:
                outcome.record = self.store.add(
                    self._build_record(handler.kind, item, descriptor, outcome.report.installed)
                )
            except FabricError as e:
                outcome.error = e
        return outcome

    def _location_path(self, path: Path | None, scope: Scope) -> str:
        if path is None:
            return ""
        if scope == Scope.PROJECT and path.is_relative_to(self.project_root):
            return path.relative_to(self.project_root).as_posix()
        return str(path)

    def _build_record(
        self,
        kind: str,
        item: DiscoveredItem,
        descriptor: OriginDescriptor,
        installed: list[TargetResult],
    ) -> InstalledRecord:
        now = utc_now()
        return InstalledRecord(
            kind=kind,
            handler_id=kind,
            name=item.name,
            version=item.version,
            description=item.description,
            origin=descriptor.display_name,
            origin_kind=descriptor.kind.value,
            origin_url=descriptor.origin_url,
            installed_at=now,
            updated_at=now,
            installed_for=[
                InstallLocation(
                    consumer_id=r.target.consumer_id,
                    scope=r.target.scope.value,
                    path=self._location_path(r.path, r.target.scope),
                )
                for r in installed
            ],
            metadata=metadata_from_discovery(kind, item.metadata),
        )

    def remove(
        self,
        name: str,
        consumer_ids: list[str] | None = None,
        scope: Scope | None = None,
    ) -> RemoveReport:
        """Remove a tracked resource from some or all of its locations.

        Raises:
            NotFoundError: If the state store doesn't track the name
        """
        record = self.store.get(name)
        if record is None:
            raise NotFoundError(f"Resource '{name}' is not installed")
        handler = self.handlers.get(record.kind)

        targets = []
        for location in record.installed_for:
            if consumer_ids and location.consumer_id not in consumer_ids:
                continue
            if scope is not None and location.scope != scope.value:
                continue
            targets.append(InstallTarget(consumer_id=location.consumer_id, scope=Scope(location.scope)))
        if consumer_ids:
            known = {t.consumer_id for t in targets}
            for consumer_id in consumer_ids:
                if consumer_id not in known:
                    targets.append(
                        InstallTarget(consumer_id=consumer_id, scope=scope or Scope.PROJECT)
                    )
        targets = list(dict.fromkeys(targets))

        report = handler.remove(name, targets)
        for target_result in report.results:
            if target_result.status in ("removed", "missing"):
                try:
                    self.store.remove_location(
                        name, target_result.target.consumer_id, target_result.target.scope.value
                    )
                except NotFoundError:
                    # Already dropped when the last location went
                    break
        return report

    def rollback(self, name: str) -> InstalledRecord:
        """Restore the previous version of a resource in the state store.

        Raises:
            NotFoundError: If the name isn't tracked
            NoHistoryError: If there is nothing to roll back to
        """
        return self.store.rollback(name)

    def history(self, name: str) -> list[HistoryEntry]:
        """History entries of a resource, most recent first."""
        return list(self.store.require(name).history)

    def installed(self) -> list[InstalledRecord]:
        """Resources tracked by the state store."""
        return self.store.all_resources()

    def list(self, kinds: list[str] | None = None, scope: Scope | None = None) -> ListResult:
        """Re-scan consumer directories for every requested kind."""
        result = ListResult()
        for kind in kinds or self.handlers.kinds():
            result.extend(self.handlers.get(kind).list(scope))
        return result
