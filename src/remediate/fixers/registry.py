"""Ordered fixer registry.

The registry maps fixer ids to their descriptor and implementation.
Registration order is the execution order within a pass, because some
categories are prerequisites of others; the order is a configuration
decision and is never derived automatically.
"""

from __future__ import annotations

from collections.abc import Iterator

from remediate.config import RemediateConfig
from remediate.fixers.base import BaseFixer, FixerDescriptor
from remediate.fixers.command import CommandFixer


class FixerRegistry:
    """Registry of fixers in registration order.

    Example:
        >>> registry = (
        ...     FixerRegistry()
        ...     .register(FixerDescriptor("imports", "TS2304"), import_fixer)
        ...     .register(FixerDescriptor("unused", "TS6133"), unused_fixer)
        ...     .freeze()
        ... )
        >>> [d.id for d in registry.ordered()]
        ['imports', 'unused']
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._descriptors: dict[str, FixerDescriptor] = {}
        self._fixers: dict[str, BaseFixer] = {}
        self._frozen = False

    def register(self, descriptor: FixerDescriptor, fixer: BaseFixer) -> FixerRegistry:
        """Register a fixer under its descriptor.

        Args:
            descriptor: Static configuration of the fixer.
            fixer: Implementation whose fixer_id equals descriptor.id.

        Returns:
            The registry, so registrations can be chained.

        Raises:
            RuntimeError: If the registry has been frozen.
            ValueError: If the ids disagree or the id is already registered.
        """
        if self._frozen:
            raise RuntimeError("Fixer registry is frozen; register fixers before the run starts")
        if fixer.fixer_id != descriptor.id:
            raise ValueError(
                f"Fixer id '{fixer.fixer_id}' does not match descriptor id '{descriptor.id}'"
            )
        if descriptor.id in self._descriptors:
            raise ValueError(f"Fixer '{descriptor.id}' already registered")
        self._descriptors[descriptor.id] = descriptor
        self._fixers[descriptor.id] = fixer
        return self

    def freeze(self) -> FixerRegistry:
        """Reject any further registration."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def ordered(self) -> list[FixerDescriptor]:
        """Descriptors in registration order."""
        return list(self._descriptors.values())

    def get(self, fixer_id: str) -> FixerDescriptor | None:
        """Descriptor for ``fixer_id``, or None if not registered."""
        return self._descriptors.get(fixer_id)

    def fixer_for(self, fixer_id: str) -> BaseFixer:
        """Implementation registered for ``fixer_id``.

        Raises:
            KeyError: If no fixer is registered under that id.
        """
        return self._fixers[fixer_id]

    def ids(self) -> list[str]:
        """Registered ids in registration order."""
        return list(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[FixerDescriptor]:
        return iter(self.ordered())

    def __contains__(self, fixer_id: object) -> bool:
        return fixer_id in self._descriptors


def build_registry(config: RemediateConfig) -> FixerRegistry:
    """Build a frozen registry of command fixers from ``[[fixers]]`` tables.

    Per-fixer values fall back to the global defaults of ``config``.

    Args:
        config: Resolved configuration.

    Returns:
        A frozen FixerRegistry in configuration order.
    """
    registry = FixerRegistry()
    for table in config.fixers:
        descriptor = FixerDescriptor(
            id=str(table["id"]),
            target_category=str(table["category"]),
            per_category_target=int(table.get("per_category_target", config.per_category_target)),
            max_attempts_per_pass=int(table.get("max_attempts", config.max_attempts_per_pass)),
        )
        fixer = CommandFixer(
            descriptor.id,
            table["command"],
            timeout=float(table.get("timeout", config.fixer_timeout)),
        )
        registry.register(descriptor, fixer)
    return registry.freeze()
