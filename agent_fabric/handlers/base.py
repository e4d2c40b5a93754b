"""Shared lifecycle for resource handlers.

BaseHandler owns the parts every kind has in common: resolving a target to
a consumer directory, the per-target install and remove loops with their
audit records, and re-scanning consumer directories for `list`. Subclasses
supply discovery, placement on disk and directory scanning.
"""

import logging
import os
import shutil
from pathlib import Path

from agent_fabric.audit import AuditTrail
from agent_fabric.core.consumer import ConsumerSpec
from agent_fabric.core.registry import ConsumerRegistry
from agent_fabric.core.resource import (
    DiscoveredItem,
    InstallMode,
    InstallReport,
    InstallTarget,
    ListedResource,
    ListError,
    ListResult,
    RemoveReport,
    Scope,
    TargetResult,
    ValidationResult,
)
from agent_fabric.exceptions import (
    AlreadyExistsError,
    ConsumerNotSupportedError,
    FabricError,
    LinkSourceMissingError,
    ValidationError,
)
from agent_fabric.naming import NamingStrategy, sanitize_name

logger = logging.getLogger(__name__)


def remove_path(path: Path) -> None:
    """Delete a file, symlink or directory tree."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def path_exists(path: Path) -> bool:
    """True for existing paths and for dangling symlinks."""
    return path.exists() or path.is_symlink()


class BaseHandler:
    """Common implementation of the ResourceHandler contract.

    Args:
        consumers: Consumer layouts to resolve targets against
        project_root: Root for project-scoped installs
        audit: Audit trail for every filesystem change
        global_root: Replaces the home directory for global installs
        naming_strategy: Strategy used by discover
    """

    kind: str = ""
    display_name: str = ""
    description: str = ""
    is_built_in: bool = True

    def __init__(
        self,
        consumers: ConsumerRegistry,
        project_root: Path,
        audit: AuditTrail | None = None,
        global_root: Path | None = None,
        naming_strategy: NamingStrategy | str = NamingStrategy.SMART_DISAMBIGUATION,
    ) -> None:
        self.consumers = consumers
        self.project_root = project_root
        self.audit = audit or AuditTrail(project_root=project_root, global_root=global_root)
        self.global_root = global_root
        self.naming_strategy = NamingStrategy.from_value(naming_strategy)

    # --- Layout -------------------------------------------------------------

    def supported_consumers(self) -> list[str]:
        return [spec.consumer_id for spec in self.consumers.supporting(self.kind)]

    def target_dir(self, target: InstallTarget) -> Path:
        """Consumer directory for a target.

        Raises:
            UnknownConsumerError: If the consumer isn't registered
            ConsumerNotSupportedError: If it doesn't declare this kind
        """
        spec = self.consumers.get(target.consumer_id)
        return spec.resolve_dir(self.kind, target.scope, self.project_root, self.global_root)

    def install_path(self, name: str, target: InstallTarget) -> Path:
        spec = self.consumers.get(target.consumer_id)
        return self.target_dir(target) / self.entry_name(name, spec)

    def entry_name(self, name: str, spec: ConsumerSpec) -> str:
        """File or directory name an item takes inside a consumer directory."""
        raise NotImplementedError

    def candidate_paths(self, name: str, target: InstallTarget) -> list[Path]:
        """Paths an installed item may occupy, checked by remove."""
        return [self.install_path(name, target)]

    # --- Lifecycle ----------------------------------------------------------

    def discover(self, source_root: Path) -> list[DiscoveredItem]:
        raise NotImplementedError

    def validate(self, item: DiscoveredItem) -> ValidationResult:
        """Check required fields and collect warnings. Never raises."""
        result = ValidationResult(valid=True)
        if not item.name or not item.name.strip():
            result.errors.append(f"{self.display_name} name is empty")
        elif sanitize_name(item.name) != item.name:
            result.errors.append(f"'{item.name}' is not a safe install name")
        if not item.files:
            result.errors.append(f"{self.display_name} '{item.name}' has no files")
        if not item.description:
            result.warnings.append(f"{self.display_name} '{item.name}' has no description")
        try:
            self.validate_kind(item, result)
        except Exception as e:
            result.errors.append(f"Validation of '{item.name}' failed: {e}")
        result.valid = not result.errors
        return result

    def validate_kind(self, item: DiscoveredItem, result: ValidationResult) -> None:
        """Kind-specific checks, appended to result."""

    def install(
        self, item: DiscoveredItem, targets: list[InstallTarget], force: bool = False
    ) -> InstallReport:
        """Install an item into each target.

        Targets are processed in order. A failing target is reported in the
        returned InstallReport and does not undo earlier targets.

        Raises:
            ValidationError: If the item is invalid; no target is touched
        """
        validation = self.validate(item)
        if not validation.valid:
            self.audit.failure(
                "install",
                item.name or item.original_name,
                self.kind,
                details={"errors": validation.errors},
            )
            raise ValidationError(
                f"{self.display_name} '{item.name or item.original_name}' is invalid: "
                + "; ".join(validation.errors),
                errors=validation.errors,
            )

        report = InstallReport(item_name=item.name, kind=self.kind)
        for target in targets:
            report.results.append(self._install_target(item, target, force))
        return report

    def _install_target(
        self, item: DiscoveredItem, target: InstallTarget, force: bool
    ) -> TargetResult:
        details = {
            "consumer": target.consumer_id,
            "scope": target.scope.value,
            "mode": target.mode.value,
        }
        path: Path | None = None
        replaced = False
        try:
            path = self.install_path(item.name, target)
            # Link preconditions are checked before anything existing is removed
            if target.mode == InstallMode.LINK:
                source = self._link_source(item, target)
            if path_exists(path):
                if not force:
                    raise AlreadyExistsError(
                        f"{self.display_name} '{item.name}' already exists for "
                        f"{target.consumer_id} at {path}"
                    )
                remove_path(path)
                replaced = True
            path.parent.mkdir(parents=True, exist_ok=True)
            if target.mode == InstallMode.LINK:
                path.symlink_to(source, target_is_directory=source.is_dir())
            else:
                self.materialize(item, target, path)
        except (FabricError, OSError) as e:
            self.audit.failure(
                "install", item.name, self.kind, target_path=path, details=details, error=e
            )
            return TargetResult(target=target, status="failed", path=path, error=e)

        details["replaced"] = replaced
        self.audit.success("install", item.name, self.kind, target_path=path, details=details)
        logger.debug("Installed %s '%s' to %s", self.kind, item.name, path)
        return TargetResult(target=target, status="installed", path=path, replaced=replaced)

    def _link_source(self, item: DiscoveredItem, target: InstallTarget) -> Path:
        source = item.source_path
        if source is None or not source.exists():
            raise LinkSourceMissingError(
                f"Cannot link {self.display_name.lower()} '{item.name}': "
                f"staged source {source or '(none)'} no longer exists"
            )
        self.check_link(item, target)
        return source.resolve()

    def check_link(self, item: DiscoveredItem, target: InstallTarget) -> None:
        """Refuse links the consumer couldn't read."""

    def materialize(self, item: DiscoveredItem, target: InstallTarget, path: Path) -> None:
        """Write the item's content at path (copy mode)."""
        raise NotImplementedError

    def remove(self, name: str, targets: list[InstallTarget]) -> RemoveReport:
        """Remove an installed item from each target.

        A target that is already gone is reported as "missing" with a
        warning audit record.
        """
        report = RemoveReport(item_name=name, kind=self.kind)
        for target in targets:
            details = {"consumer": target.consumer_id, "scope": target.scope.value}
            try:
                candidates = self.candidate_paths(name, target)
                existing = [p for p in candidates if path_exists(p)]
                if not existing:
                    self.audit.warning(
                        "remove",
                        name,
                        self.kind,
                        target_path=candidates[0],
                        details={**details, "reason": "not installed"},
                    )
                    report.results.append(
                        TargetResult(target=target, status="missing", path=candidates[0])
                    )
                    continue
                for path in existing:
                    remove_path(path)
                    self.audit.success(
                        "remove", name, self.kind, target_path=path, details=details
                    )
            except (FabricError, OSError) as e:
                self.audit.failure("remove", name, self.kind, details=details, error=e)
                report.results.append(TargetResult(target=target, status="failed", error=e))
                continue
            report.results.append(TargetResult(target=target, status="removed", path=existing[0]))
        return report

    def scan_dir(self, directory: Path, spec: ConsumerSpec, scope: Scope) -> list[ListedResource]:
        """Installed items found in one consumer directory."""
        raise NotImplementedError

    def list(self, scope: Scope | None = None) -> ListResult:
        """Re-scan every supporting consumer directory.

        Missing directories are skipped silently. A directory shared by
        several consumers is scanned once. Unreadable directories become
        ListError entries.
        """
        scopes = [scope] if scope is not None else [Scope.PROJECT, Scope.GLOBAL]
        result = ListResult()
        seen: set[Path] = set()
        for spec in self.consumers.supporting(self.kind):
            for current in scopes:
                try:
                    directory = spec.resolve_dir(
                        self.kind, current, self.project_root, self.global_root
                    )
                except ConsumerNotSupportedError:
                    continue
                key = Path(os.path.abspath(directory))
                if key in seen:
                    continue
                seen.add(key)
                if not directory.is_dir():
                    continue
                try:
                    result.resources.extend(self.scan_dir(directory, spec, current))
                except OSError as e:
                    result.errors.append(
                        ListError(
                            consumer_id=spec.consumer_id,
                            scope=current,
                            error=self.audit.redact_message(str(e)) or "",
                        )
                    )
        return result
