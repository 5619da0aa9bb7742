"""Identifier keyed async container.

Registrations are addressed by opaque identifiers and resolved lazily, so a
registration may reference identifiers that are registered after it.
"""

from __future__ import annotations

import abc
import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from contextvars import ContextVar
from enum import IntEnum
from typing import Any
from uuid import uuid4

from theutilitybelt.functional.utils import constant

from .exceptions import CannotResolveError, CircularDependencyError, DuplicateRegistrationError
from .markers import EMPTY

logger = logging.getLogger(__name__)

_resolution_chain: ContextVar[tuple[Any, ...]] = ContextVar("decorated_ioc_resolution_chain", default=())
_active_context: ContextVar[_ResolvingContext | None] = ContextVar("decorated_ioc_active_context", default=None)


class Lifespan(IntEnum):
    transient = 0
    once_per_graph = 1
    singleton = 2


class Activator(abc.ABC):
    @classmethod
    @abc.abstractmethod
    async def activate_async(cls, producer: Callable, resolved_dependencies: list[Any]) -> Any: ...


class FactoryActivator(Activator):
    @classmethod
    async def activate_async(cls, producer: Callable, resolved_dependencies: list[Any]):
        instance = producer(*resolved_dependencies)
        if inspect.isawaitable(instance):
            return await instance
        return instance


class AsyncFactoryActivator(Activator):
    @classmethod
    async def activate_async(cls, producer: Callable[..., Awaitable[Any]], resolved_dependencies: list[Any]):
        return await producer(*resolved_dependencies)


class InstanceActivator(Activator):
    @classmethod
    async def activate_async(cls, producer: Callable[[], Any], resolved_dependencies: list[Any]):
        return producer()


def _get_activator_class(producer: Callable) -> type[Activator]:
    if inspect.iscoroutinefunction(producer):
        return AsyncFactoryActivator
    return FactoryActivator


class _Registration:
    __slots__ = ("activator_class", "dependency_ids", "identifier", "lifespan", "producer")

    def __init__(
        self,
        *,
        identifier: Any,
        producer: Callable,
        dependency_ids: Iterable[Any],
        lifespan: Lifespan,
        activator_class: type[Activator],
    ):
        self.identifier = identifier
        self.producer = producer
        self.dependency_ids = tuple(dependency_ids)
        self.lifespan = lifespan
        self.activator_class = activator_class

    def __repr__(self):
        return f"Registration({self.identifier!r}, lifespan={self.lifespan.name})"


class _ResolvingContext:
    """Resolution state for one top level ``inject()`` call."""

    def __init__(self, container: Container):
        self.container = container
        self._graph_values: dict[Any, Any] = {}
        self._graph_pending: dict[Any, asyncio.Future] = {}

    async def resolve(self, identifier: Any) -> Any:
        chain = _resolution_chain.get()
        if identifier in chain:
            raise CircularDependencyError(chain + (identifier,))

        registration = self.container.get_registration(identifier)
        if registration is None:
            raise CannotResolveError(identifier)

        if registration.lifespan == Lifespan.singleton:
            return await self.container.shared_value(
                registration, self.container.singletons, self.container.pending_singletons, self
            )
        if registration.lifespan == Lifespan.once_per_graph:
            return await self.container.shared_value(registration, self._graph_values, self._graph_pending, self)
        return await self.build(registration)

    async def build(self, registration: _Registration) -> Any:
        token = _resolution_chain.set(_resolution_chain.get() + (registration.identifier,))
        context_token = _active_context.set(self)
        try:
            resolved_dependencies = []
            for dependency_id in registration.dependency_ids:
                try:
                    resolved_dependencies.append(await self.resolve(dependency_id))
                except CannotResolveError as ex:
                    ex.append(registration.identifier)
                    raise ex
            return await registration.activator_class.activate_async(registration.producer, resolved_dependencies)
        finally:
            _active_context.reset(context_token)
            _resolution_chain.reset(token)


class Dependency:
    """Handle issued by a container for one identifier."""

    def __init__(self, container: Container, identifier: Any):
        self.container = container
        self.identifier = identifier
        self.injected: Any = EMPTY

    @property
    def is_injected(self) -> bool:
        return self.injected is not EMPTY

    async def inject(self) -> Any:
        context = _ResolvingContext(self.container)
        value = await context.resolve(self.identifier)
        self.injected = value
        return value

    def __repr__(self):
        return f"Dependency({self.identifier!r}, container={self.container.name})"


class Container:
    def __init__(self, name: str | None = None, lifespan: Lifespan = Lifespan.singleton):
        self.name = name or f"container-{uuid4()}"
        self.lifespan = lifespan
        self._registrations: dict[Any, _Registration] = {}
        self._dependencies: dict[Any, Dependency] = {}
        self.singletons: dict[Any, Any] = {}
        self.pending_singletons: dict[Any, asyncio.Future] = {}
        # identifiers being built mapped to the shared builds they are waiting on
        self.waiting: dict[Any, set[Any]] = {}

    def _add_registration(self, registration: _Registration) -> Container:
        if registration.identifier in self._registrations:
            raise DuplicateRegistrationError(registration.identifier, self.name)

        self._registrations[registration.identifier] = registration
        self._dependencies[registration.identifier] = Dependency(self, registration.identifier)
        logger.debug("Container %s registered %r", self.name, registration)
        return self

    def register_factory(
        self,
        identifier: Any,
        producer: Callable,
        dependency_ids: Iterable[Any] = (),
        lifespan: Lifespan | None = None,
    ) -> Container:
        return self._add_registration(
            _Registration(
                identifier=identifier,
                producer=producer,
                dependency_ids=dependency_ids,
                lifespan=self.lifespan if lifespan is None else lifespan,
                activator_class=_get_activator_class(producer),
            )
        )

    def register_instance(
        self,
        identifier: Any,
        value: Any,
        dependency_ids: Iterable[Any] = (),
        lifespan: Lifespan | None = None,
    ) -> Container:
        return self._add_registration(
            _Registration(
                identifier=identifier,
                producer=constant(value),
                dependency_ids=dependency_ids,
                lifespan=self.lifespan if lifespan is None else lifespan,
                activator_class=InstanceActivator,
            )
        )

    def get_dep(self, identifier: Any) -> Dependency | None:
        return self._dependencies.get(identifier)

    def has_dep(self, identifier: Any) -> bool:
        return identifier in self._registrations

    def get_registration(self, identifier: Any) -> _Registration | None:
        return self._registrations.get(identifier)

    @property
    def identifiers(self) -> list[Any]:
        return list(self._registrations)

    async def resolve(self, identifier: Any) -> Any:
        dependency = self.get_dep(identifier)
        if dependency is None:
            raise CannotResolveError(identifier)
        return await dependency.inject()

    async def resolve_in_graph(self, identifier: Any) -> Any:
        """Resolve ``identifier`` as part of the graph currently being built.

        Values shared once per graph are taken from the ``inject()`` call in
        progress. Outside of a build this is the same as ``resolve()``.
        """
        context = _active_context.get()
        if context is None or context.container is not self:
            return await self.resolve(identifier)
        return await context.resolve(identifier)

    def _waits_on(self, identifier: Any, targets: tuple[Any, ...]) -> bool:
        seen = set()
        stack = [identifier]
        while stack:
            current = stack.pop()
            if current in targets:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.waiting.get(current, ()))
        return False

    @staticmethod
    async def shared_value(
        registration: _Registration,
        values: dict[Any, Any],
        pending: dict[Any, asyncio.Future],
        context: _ResolvingContext,
    ) -> Any:
        identifier = registration.identifier
        if identifier in values:
            return values[identifier]

        container = context.container
        chain = _resolution_chain.get()
        task = pending.get(identifier)
        if task is None:
            task = asyncio.ensure_future(context.build(registration))
            pending[identifier] = task
            task.add_done_callback(lambda _: pending.pop(identifier, None))
        elif chain and container._waits_on(identifier, chain):
            # the build in flight is itself waiting on this one
            raise CircularDependencyError(chain + (identifier,))

        if not chain:
            value = await task
        else:
            waiter = chain[-1]
            container.waiting.setdefault(waiter, set()).add(identifier)
            try:
                value = await task
            finally:
                waits = container.waiting.get(waiter)
                if waits is not None:
                    waits.discard(identifier)
                    if not waits:
                        del container.waiting[waiter]

        values[identifier] = value
        return value

    def __repr__(self):
        return f"Container({self.name!r}, registrations={len(self._registrations)})"
