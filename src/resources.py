#!/usr/bin/env python3
# Copyright 2024 Canonical Ltd.
# See LICENSE file for licensing details.

"""Desired-state resources and the graph ordering them.

A resource describes how something on the host should look. Edges between
resources come in two flavours: ``require`` only orders them, ``notify``
also orders them and refreshes the target when the source changed.
"""

from dataclasses import dataclass
from graphlib import CycleError, TopologicalSorter
from typing import ClassVar, Dict, Iterable, Iterator, List, Optional, Set, Union

from exceptions import DuplicateResourceError, ResourceGraphError
from literals import ROOT_GROUP, ROOT_USER

PRESENT = "present"
ABSENT = "absent"


@dataclass(frozen=True)
class File:
    """A file with managed content, ownership and permissions.

    With ``replace`` false, an existing file keeps its content and only
    ownership and permissions are enforced.
    """

    kind: ClassVar[str] = "File"

    path: str
    content: Optional[str] = None
    owner: str = ROOT_USER
    group: str = ROOT_GROUP
    mode: int = 0o644
    replace: bool = True
    ensure: str = PRESENT

    @property
    def ref(self) -> str:
        return f"{self.kind}[{self.path}]"


@dataclass(frozen=True)
class Service:
    """An OS service and its running and boot state."""

    kind: ClassVar[str] = "Service"

    name: str
    provider: str
    running: bool = True
    enabled: bool = True

    @property
    def ref(self) -> str:
        return f"{self.kind}[{self.name}]"


@dataclass(frozen=True)
class Package:
    """An OS package that must be installed."""

    kind: ClassVar[str] = "Package"

    name: str

    @property
    def ref(self) -> str:
        return f"{self.kind}[{self.name}]"


Resource = Union[File, Service, Package]
Edge = Union[Resource, str]


def _ref(target: Edge) -> str:
    return target if isinstance(target, str) else target.ref


class ResourceGraph:
    """Resources keyed by reference, with their ordering edges."""

    def __init__(self) -> None:
        self._resources: Dict[str, Resource] = {}
        self._requires: Dict[str, Set[str]] = {}
        self._notifies: Dict[str, Set[str]] = {}

    def add(
        self, resource: Resource, require: Iterable[Edge] = (), notify: Iterable[Edge] = ()
    ) -> Resource:
        """Declare a resource.

        Declaring an identical resource twice is allowed and merges the edges.

        Raises:
            DuplicateResourceError: if a different resource has the same reference
        """
        ref = resource.ref
        existing = self._resources.get(ref)
        if existing is not None and existing != resource:
            raise DuplicateResourceError(f"{ref} is declared twice with different attributes")

        self._resources[ref] = resource
        self._requires.setdefault(ref, set()).update(_ref(r) for r in require)
        self._notifies.setdefault(ref, set()).update(_ref(n) for n in notify)
        return resource

    def merge(self, other: "ResourceGraph") -> None:
        for ref, resource in other._resources.items():
            self.add(resource, other._requires[ref], other._notifies[ref])

    def __contains__(self, item: Edge) -> bool:
        return _ref(item) in self._resources

    def __getitem__(self, ref: str) -> Resource:
        return self._resources[ref]

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources.values())

    def __len__(self) -> int:
        return len(self._resources)

    def requires(self, item: Edge) -> Set[str]:
        return set(self._requires.get(_ref(item), ()))

    def notifies(self, item: Edge) -> Set[str]:
        return set(self._notifies.get(_ref(item), ()))

    def notified_by(self, item: Edge) -> Set[str]:
        """References of the resources that refresh the given one."""
        ref = _ref(item)
        return {source for source, targets in self._notifies.items() if ref in targets}

    def ordered(self) -> List[Resource]:
        """Return the resources so that every edge source comes before its target.

        Raises:
            ResourceGraphError: if an edge points to an undeclared resource or
                the edges form a cycle
        """
        sorter = TopologicalSorter()
        for ref in self._resources:
            dangling = (self._requires[ref] | self._notifies[ref]) - self._resources.keys()
            if dangling:
                raise ResourceGraphError(
                    f"{ref} references undeclared resources: {', '.join(sorted(dangling))}"
                )
            sorter.add(ref, *sorted(self._requires[ref]))
            for target in sorted(self._notifies[ref]):
                sorter.add(target, ref)

        try:
            order = list(sorter.static_order())
        except CycleError as e:
            raise ResourceGraphError(f"dependency cycle: {' -> '.join(e.args[1])}") from e
        return [self._resources[ref] for ref in order]
