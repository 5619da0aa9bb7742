"""Dependency descriptors and the graph registrar."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from .container import Container, Lifespan
from .exceptions import (
    IdentifierConflictError,
    IncompleteDescriptorError,
    MissingIdentifierError,
    UnknownKindError,
)
from .markers import EMPTY
from .reflection import TypeReflector, TypingReflector, get_subject
from .type_filters import is_simple_type

logger = logging.getLogger(__name__)


class ResolverKind(IntEnum):
    TYPE = 0
    FACTORY = 1
    INSTANCE = 2


@dataclass(frozen=True)
class MemberSet:
    """Identifier of the property dependencies declared on a class."""

    target: type


class DependencyDescriptor:
    __slots__ = ("dependencies", "identifier", "kind", "lifespan", "member_key", "target")

    def __init__(
        self,
        identifier: Any = None,
        target: Any = None,
        kind: ResolverKind = ResolverKind.TYPE,
        lifespan: Lifespan | None = None,
        member_key: str | None = None,
    ):
        self.identifier = identifier
        self.target = target
        self.kind = kind
        self.lifespan = lifespan
        self.member_key = member_key
        self.dependencies: list[DependencyDescriptor | None] = []

    def place(self, index: int, child: DependencyDescriptor):
        if index >= len(self.dependencies):
            self.dependencies.extend([None] * (index + 1 - len(self.dependencies)))
        self.dependencies[index] = child

    def has_dependency_at(self, index: int) -> bool:
        return index < len(self.dependencies) and self.dependencies[index] is not None

    @property
    def dependency_ids(self) -> list[Any]:
        missing = [i for i, d in enumerate(self.dependencies) if d is None]
        if missing:
            raise IncompleteDescriptorError(self.identifier, missing)
        return [d.identifier for d in self.dependencies]  # type: ignore

    def __repr__(self) -> str:
        kind = getattr(self.kind, "name", self.kind)
        lifespan = getattr(self.lifespan, "name", None)
        return f"DependencyDescriptor({self.identifier!r}, kind={kind}, lifespan={lifespan})"


class DescriptorRegistry:
    """Every declared descriptor, keyed by identifier.

    Declaration sites (a class, a function, or a class member) are tracked
    separately so a site can be declared in several steps before its
    identifier is known.
    """

    def __init__(self):
        self._descriptors: dict[Any, DependencyDescriptor] = {}
        self._sites: dict[tuple[Any, str | None], DependencyDescriptor] = {}

    def upsert(self, descriptor: DependencyDescriptor) -> DependencyDescriptor:
        current = self._descriptors.get(descriptor.identifier)
        if current is not None and current is not descriptor and current.target is not descriptor.target:
            logger.warning("Replacing declaration of %r, it was declared more than once", descriptor.identifier)
        self._descriptors[descriptor.identifier] = descriptor
        return descriptor

    def get(self, identifier: Any) -> DependencyDescriptor | None:
        return self._descriptors.get(identifier)

    def for_site(self, target: Any, member_key: str | None = None) -> DependencyDescriptor | None:
        return self._sites.get((target, member_key))

    def bind_site(self, target: Any, member_key: str | None, descriptor: DependencyDescriptor):
        self._sites[(target, member_key)] = descriptor

    def __contains__(self, identifier: Any) -> bool:
        return identifier in self._descriptors

    def __iter__(self) -> Iterator[DependencyDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)


class DescriptorBuilder:
    def __init__(self, registry: DescriptorRegistry, reflector: TypeReflector | None = None):
        self.registry = registry
        self.reflector = reflector or TypingReflector()

    def site(self, target: Any, member_key: str | None = None) -> DependencyDescriptor:
        descriptor = self.registry.for_site(target, member_key)
        if descriptor is None:
            descriptor = DependencyDescriptor(target=get_subject(target, member_key))
            self.registry.bind_site(target, member_key, descriptor)
        return descriptor

    def _root_identifier(self, descriptor: DependencyDescriptor, subject: Any, identifier: Any, target: Any) -> Any:
        if identifier is not None:
            if descriptor.identifier is not None and descriptor.identifier != identifier:
                raise IdentifierConflictError(target, descriptor.identifier, identifier)
            return identifier

        if descriptor.identifier is not None:
            return descriptor.identifier

        if inspect.isclass(subject):
            return subject

        return_type = self.reflector.return_type(subject)
        if is_simple_type(return_type):
            raise MissingIdentifierError(return_type, subject, "return")
        return return_type

    def declare_root(
        self,
        target: Any,
        identifier: Any = None,
        lifespan: Lifespan | None = None,
        member_key: str | None = None,
    ) -> DependencyDescriptor:
        subject = get_subject(target, member_key)
        if not callable(subject):
            raise TypeError(f"{subject!r} is neither a class nor a callable and cannot be declared as a dependency")

        descriptor = self.registry.for_site(target, member_key) or DependencyDescriptor(target=subject)
        root_identifier = self._root_identifier(descriptor, subject, identifier, target)

        # nothing is written until every implicit parameter is known to be valid
        implicit = {
            index: self._parameter_child(param.annotation, subject, index, param.identifier, param.lifespan)
            for index, param in enumerate(self.reflector.param_types(target, member_key))
            if not descriptor.has_dependency_at(index)
        }

        descriptor.identifier = root_identifier
        descriptor.kind = ResolverKind.TYPE if inspect.isclass(subject) else ResolverKind.FACTORY
        descriptor.target = subject
        if lifespan is not None:
            descriptor.lifespan = lifespan
        for index, child in implicit.items():
            descriptor.place(index, child)

        self.registry.bind_site(target, member_key, descriptor)
        logger.debug("Declared %r", descriptor)
        return self.registry.upsert(descriptor)

    def _parameter_child(
        self, param_type: Any, owner: Any, index: int, identifier: Any, lifespan: Lifespan | None
    ) -> DependencyDescriptor:
        if identifier is None and is_simple_type(param_type):
            raise MissingIdentifierError(param_type, owner, index)

        return DependencyDescriptor(identifier=param_type if identifier is None else identifier, lifespan=lifespan)

    def declare_parameter(
        self,
        param_type: Any,
        index: int,
        owner: DependencyDescriptor,
        identifier: Any = None,
        lifespan: Lifespan | None = None,
    ) -> DependencyDescriptor:
        child = self._parameter_child(param_type, owner.target, index, identifier, lifespan)
        owner.place(index, child)

        if owner.identifier is not None:
            self.registry.upsert(owner)
        return child

    def declare_property(
        self,
        owner: type,
        member_key: str,
        identifier: Any = None,
        lifespan: Lifespan | None = None,
    ) -> DependencyDescriptor:
        member_type = self.reflector.member_type(owner, member_key).annotation
        if identifier is None:
            if is_simple_type(member_type):
                raise MissingIdentifierError(member_type, owner, member_key)
            identifier = member_type

        child = DependencyDescriptor(identifier=identifier, lifespan=lifespan, member_key=member_key)

        current_value = inspect.getattr_static(owner, member_key, EMPTY)
        if current_value is not EMPTY and not isinstance(current_value, property):
            child.kind = ResolverKind.INSTANCE
            child.target = current_value
            self.registry.upsert(child)

        member_set = self.site(MemberSet(owner))
        member_set.identifier = MemberSet(owner)
        member_set.target = owner
        member_set.dependencies = [d for d in member_set.dependencies if d and d.member_key != member_key]
        member_set.dependencies.append(child)

        logger.debug("Declared member %s.%s as %r", owner.__name__, member_key, child)
        self.registry.upsert(member_set)
        return child


class GraphRegistrar:
    def __init__(self, registry: DescriptorRegistry):
        self.registry = registry

    def member_dependencies(self, target: type) -> list[DependencyDescriptor]:
        member_set = self.registry.get(MemberSet(target))
        if member_set is None:
            return []
        return [d for d in member_set.dependencies if d is not None]

    def register(self, root: DependencyDescriptor, container: Container) -> list[Any]:
        """Register ``root`` and every reachable descriptor not yet known to ``container``.

        Children are only declared, not resolved, so siblings are registered in
        no particular order. Returns the identifiers registered by this call.
        """
        registered = []
        work_list: deque[DependencyDescriptor] = deque([root])

        while work_list:
            reference = work_list.pop()
            descriptor = self.registry.get(reference.identifier)
            if descriptor is None:
                logger.debug("%r has no declaration, leaving it for the container to report", reference.identifier)
                continue

            # shared dependencies are reachable through more than one path
            if container.has_dep(descriptor.identifier):
                continue

            dependency_ids = descriptor.dependency_ids
            # a lifespan requested where the dependency is used applies when its declaration has none
            lifespan = descriptor.lifespan if descriptor.lifespan is not None else reference.lifespan
            work_list.extend(d for d in descriptor.dependencies if d is not None)

            if descriptor.kind == ResolverKind.FACTORY:
                container.register_factory(descriptor.identifier, descriptor.target, dependency_ids, lifespan)
            elif descriptor.kind == ResolverKind.INSTANCE:
                container.register_instance(descriptor.identifier, descriptor.target, dependency_ids, lifespan)
            elif descriptor.kind == ResolverKind.TYPE:
                members = self.member_dependencies(descriptor.target)
                work_list.extend(members)
                container.register_factory(
                    descriptor.identifier,
                    self._type_producer(descriptor.target, members, container),
                    dependency_ids,
                    lifespan,
                )
            else:
                raise UnknownKindError(descriptor)

            registered.append(descriptor.identifier)
            logger.debug("Registered %r with %s", descriptor, container.name)

        return registered

    def _type_producer(
        self, target: type, members: list[DependencyDescriptor], container: Container
    ) -> Callable[..., Any]:
        async def produce(*args):
            instance = target(*args)
            if not members:
                return instance

            values = await asyncio.gather(*(container.resolve_in_graph(m.identifier) for m in members))
            patch = {m.member_key: value for m, value in zip(members, values)}
            for member_key, value in patch.items():
                setattr(instance, member_key, value)
            return instance

        return produce
