"""Registries for consumers and resource handlers.

Both registries are plain instances built at the composition root, so
tests and embedding applications can hold independent sets.
"""

from pathlib import Path
from typing import Iterable

from agent_fabric.core.consumer import ConsumerSpec
from agent_fabric.core.handler import ResourceHandler
from agent_fabric.core.specs import BUILT_IN_CONSUMERS, DEFAULT_CONSUMER_ID
from agent_fabric.exceptions import (
    HandlerNotFoundError,
    HandlerRegistrationError,
    UnknownConsumerError,
)


class ConsumerRegistry:
    """Consumer specifications keyed by id.

    Usage:
        registry = ConsumerRegistry.with_builtins()
        claude = registry.get("claude-code")
    """

    def __init__(self, specs: Iterable[ConsumerSpec] = ()) -> None:
        self._specs: dict[str, ConsumerSpec] = {}
        for spec in specs:
            self.register(spec)

    @classmethod
    def with_builtins(cls) -> "ConsumerRegistry":
        return cls(BUILT_IN_CONSUMERS)

    def register(self, spec: ConsumerSpec) -> None:
        self._specs[spec.consumer_id] = spec

    def get(self, consumer_id: str) -> ConsumerSpec:
        """Look up a consumer.

        Raises:
            UnknownConsumerError: If no consumer is registered under the id
        """
        if consumer_id not in self._specs:
            available = ", ".join(self._specs) if self._specs else "none"
            raise UnknownConsumerError(
                f"Unknown consumer '{consumer_id}'. Available: {available}"
            )
        return self._specs[consumer_id]

    def has(self, consumer_id: str) -> bool:
        return consumer_id in self._specs

    def all(self) -> list[ConsumerSpec]:
        return list(self._specs.values())

    def all_ids(self) -> list[str]:
        return list(self._specs)

    def supporting(self, kind: str) -> list[ConsumerSpec]:
        """Consumers that declare a directory for a kind."""
        return [spec for spec in self._specs.values() if spec.supports(kind)]

    def detect_installed(self, project_root: Path, global_root: Path | None = None) -> list[str]:
        """Ids of consumers whose detection markers exist."""
        return [
            spec.consumer_id
            for spec in self._specs.values()
            if spec.is_detected(project_root, global_root)
        ]

    def default_id(self) -> str:
        """Claude Code when registered, otherwise the first consumer."""
        if DEFAULT_CONSUMER_ID in self._specs:
            return DEFAULT_CONSUMER_ID
        if not self._specs:
            raise UnknownConsumerError("No consumers are registered")
        return next(iter(self._specs))


_REQUIRED_ATTRIBUTES = ("kind", "display_name", "is_built_in")


class HandlerRegistry:
    """Resource handlers keyed by kind."""

    def __init__(self) -> None:
        self._handlers: dict[str, ResourceHandler] = {}

    def register(self, handler: ResourceHandler, replace: bool = False) -> None:
        """Register a handler for its kind.

        Raises:
            HandlerRegistrationError: If the object doesn't satisfy the handler
                contract or its kind is already taken
        """
        missing = [attr for attr in _REQUIRED_ATTRIBUTES if not hasattr(handler, attr)]
        if missing or not isinstance(handler, ResourceHandler):
            detail = f"missing {', '.join(missing)}" if missing else "missing lifecycle methods"
            raise HandlerRegistrationError(
                f"{type(handler).__name__} is not a resource handler ({detail})"
            )
        if not handler.kind:
            raise HandlerRegistrationError(f"{type(handler).__name__} declares an empty kind")
        if handler.kind in self._handlers and not replace:
            raise HandlerRegistrationError(
                f"A handler for kind '{handler.kind}' is already registered"
            )
        self._handlers[handler.kind] = handler

    def unregister(self, kind: str) -> None:
        self._handlers.pop(kind, None)

    def get(self, kind: str) -> ResourceHandler:
        """Look up the handler for a kind.

        Raises:
            HandlerNotFoundError: If no handler handles the kind
        """
        if kind not in self._handlers:
            available = ", ".join(self._handlers) if self._handlers else "none"
            raise HandlerNotFoundError(
                f"No handler registered for kind '{kind}'. Available: {available}"
            )
        return self._handlers[kind]

    def has(self, kind: str) -> bool:
        return kind in self._handlers

    def kinds(self) -> list[str]:
        return list(self._handlers)

    def all(self) -> list[ResourceHandler]:
        return list(self._handlers.values())

    def plugins(self) -> list[ResourceHandler]:
        """Handlers that aren't built in."""
        return [h for h in self._handlers.values() if not h.is_built_in]
