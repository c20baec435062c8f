"""Validation of high-precision entity hierarchies.

A hierarchy is described by :class:`EntityRecord` values: each entity lists the
components it carries, its parent and its children. Validation walks the tree from
the entities without a parent and checks that every entity matches one of the kinds
of node allowed below its parent.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

__all__ = [
    "Component",
    "EntityRecord",
    "ValidHierarchyNode",
    "SpatialHierarchyRoot",
    "ValidationIssue",
    "HierarchyValidator",
    "validate_hierarchy",
]

logger = logging.getLogger(__name__)


class Component(Enum):
    """Components that decide which kind of hierarchy node an entity is."""

    GRID_CELL = "GridCell"
    TRANSFORM = "Transform"
    GLOBAL_TRANSFORM = "GlobalTransform"
    BIG_SPACE = "BigSpace"
    GRID = "Grid"
    FLOATING_ORIGIN = "FloatingOrigin"
    CHILD_OF = "ChildOf"
    LOW_PRECISION_ROOT = "LowPrecisionRoot"


@dataclass(frozen=True)
class EntityRecord:
    """One entity of the hierarchy: its components, parent and children.

    ``CHILD_OF`` is implied by having a parent and need not be listed.
    """

    entity: Hashable
    components: frozenset[Component] = field(default_factory=frozenset)
    parent: Hashable | None = None
    children: tuple[Hashable, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "components", frozenset(self.components))
        object.__setattr__(self, "children", tuple(self.children))

    @property
    def all_components(self) -> frozenset[Component]:
        """The listed components, plus ``CHILD_OF`` when the entity has a parent."""
        if self.parent is not None:
            return self.components | {Component.CHILD_OF}
        return self.components - {Component.CHILD_OF}


class ValidHierarchyNode:
    """A kind of node: components it must and must not have, and its allowed children."""

    name: str = "Node"
    required: frozenset[Component] = frozenset()
    forbidden: frozenset[Component] = frozenset()

    def matches(self, record: EntityRecord) -> bool:
        """Whether ``record`` is a node of this kind."""
        components = record.all_components
        return self.required <= components and not (self.forbidden & components)

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        """The kinds of node that may be children of this node."""
        return []

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


_C = Component


class SpatialHierarchyRoot(ValidHierarchyNode):
    """The virtual parent of every entity without a parent."""

    name = "Root"

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [_RootFrame(), _RootSpatialLowPrecision(), _AnyNonSpatial()]


class _AnyNonSpatial(ValidHierarchyNode):
    name = "Any non-spatial entity"
    forbidden = frozenset(
        {_C.GRID_CELL, _C.TRANSFORM, _C.GLOBAL_TRANSFORM, _C.BIG_SPACE, _C.GRID, _C.FLOATING_ORIGIN}
    )

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [_AnyNonSpatial()]


class _RootFrame(ValidHierarchyNode):
    name = "Root of a BigSpace"
    required = frozenset({_C.BIG_SPACE, _C.GRID, _C.GLOBAL_TRANSFORM})
    forbidden = frozenset({_C.GRID_CELL, _C.TRANSFORM, _C.CHILD_OF, _C.FLOATING_ORIGIN})

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [
            _ChildFrame(),
            _ChildSpatialLowPrecision(),
            _ChildSpatialHighPrecision(),
            _AnyNonSpatial(),
        ]


class _RootSpatialLowPrecision(ValidHierarchyNode):
    name = "Root of a Transform hierarchy at the root of the tree outside of any BigSpace"
    required = frozenset({_C.TRANSFORM, _C.GLOBAL_TRANSFORM})
    forbidden = frozenset(
        {_C.GRID_CELL, _C.BIG_SPACE, _C.GRID, _C.CHILD_OF, _C.FLOATING_ORIGIN}
    )

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [_ChildSpatialLowPrecision(), _AnyNonSpatial()]


class _ChildFrame(ValidHierarchyNode):
    name = "Non-root Grid"
    required = frozenset(
        {_C.GRID, _C.GRID_CELL, _C.TRANSFORM, _C.GLOBAL_TRANSFORM, _C.CHILD_OF}
    )
    forbidden = frozenset({_C.BIG_SPACE})

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [
            _ChildFrame(),
            _ChildRootSpatialLowPrecision(),
            _ChildSpatialHighPrecision(),
            _AnyNonSpatial(),
        ]


class _ChildRootSpatialLowPrecision(ValidHierarchyNode):
    name = "Root of a low-precision Transform hierarchy, within a BigSpace"
    required = frozenset(
        {_C.TRANSFORM, _C.GLOBAL_TRANSFORM, _C.CHILD_OF, _C.LOW_PRECISION_ROOT}
    )
    forbidden = frozenset({_C.GRID_CELL, _C.BIG_SPACE, _C.GRID, _C.FLOATING_ORIGIN})

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [_ChildSpatialLowPrecision(), _AnyNonSpatial()]


class _ChildSpatialLowPrecision(ValidHierarchyNode):
    name = "Non-root low-precision spatial entity"
    required = frozenset({_C.TRANSFORM, _C.GLOBAL_TRANSFORM, _C.CHILD_OF})
    forbidden = frozenset({_C.GRID_CELL, _C.BIG_SPACE, _C.GRID, _C.FLOATING_ORIGIN})

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [_ChildSpatialLowPrecision(), _AnyNonSpatial()]


class _ChildSpatialHighPrecision(ValidHierarchyNode):
    name = "Non-root high precision spatial entity"
    required = frozenset({_C.GRID_CELL, _C.TRANSFORM, _C.GLOBAL_TRANSFORM, _C.CHILD_OF})
    forbidden = frozenset({_C.BIG_SPACE, _C.GRID})

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [_ChildRootSpatialLowPrecision(), _AnyNonSpatial()]


@dataclass(frozen=True)
class ValidationIssue:
    """An entity whose components match no kind of node allowed below its parent."""

    entity: Hashable
    parent_node: str
    allowed: tuple[str, ...]
    components: tuple[str, ...]

    @property
    def message(self) -> str:
        """A readable report of the problem."""
        allowed = "".join(f"  - {name}\n" for name in self.allowed)
        found = "".join(f"  - {name}\n" for name in self.components)
        return (
            "hierarchy validation error\n\n"
            f"Entity {self.entity} is a child of a {self.parent_node!r}, but the components "
            "on this entity do not match any of the allowed archetypes for children of "
            "this parent.\n\n"
            f"Because it is a child of a {self.parent_node!r}, the entity must be one of "
            f"the following:\n{allowed}\n"
            "However, the entity has the following components, which do not match any of "
            f"the allowed archetypes listed above:\n{found}\n"
            "Common errors include:\n"
            "  - Spawning an entity with a GridCell as a child of an entity without a Grid.\n"
        )

    def __str__(self) -> str:
        return self.message


class HierarchyValidator:
    """Validates hierarchies, reporting each invalid entity only once over its lifetime."""

    def __init__(self, root: ValidHierarchyNode | None = None) -> None:
        self._root = root if root is not None else SpatialHierarchyRoot()
        self._error_entities: set[Hashable] = set()

    def validate(self, entities: Iterable[EntityRecord]) -> list[ValidationIssue]:
        """Check every entity reachable from the parentless ones; return new issues.

        Raises ``ValueError`` for duplicate entities and ``KeyError`` for a child that
        is not among ``entities``.
        """
        records: dict[Hashable, EntityRecord] = {}
        for record in entities:
            if record.entity in records:
                raise ValueError(f"entity {record.entity!r} is listed more than once")
            records[record.entity] = record

        roots = [entity for entity, record in records.items() if record.parent is None]
        stack: list[tuple[ValidHierarchyNode, Sequence[Hashable]]] = [(self._root, roots)]
        issues: list[ValidationIssue] = []

        while stack:
            parent_node, children = stack.pop()
            candidates = parent_node.allowed_child_nodes()
            for entity in children:
                try:
                    record = records[entity]
                except KeyError:
                    raise KeyError(f"child entity {entity!r} is not in the hierarchy") from None
                node = next((c for c in candidates if c.matches(record)), None)
                if node is not None:
                    if record.children:
                        stack.append((node, record.children))
                    continue
                if entity in self._error_entities:
                    continue
                issue = ValidationIssue(
                    entity=entity,
                    parent_node=parent_node.name,
                    allowed=tuple(c.name for c in candidates),
                    components=tuple(
                        c.value for c in Component if c in record.all_components
                    ),
                )
                logger.error("%s", issue.message)
                self._error_entities.add(entity)
                issues.append(issue)
        return issues


def validate_hierarchy(entities: Iterable[EntityRecord]) -> list[ValidationIssue]:
    """Validate ``entities`` once with a fresh validator and return every issue."""
    return HierarchyValidator().validate(entities)