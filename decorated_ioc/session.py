from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from .container import Container, Dependency, Lifespan
from .core import DescriptorBuilder, DescriptorRegistry, GraphRegistrar
from .exceptions import NoActiveSessionError, NotDeclaredError
from .reflection import TypeReflector, TypingReflector

logger = logging.getLogger(__name__)

TTarget = TypeVar("TTarget")

ErrorSink = Callable[[BaseException], None]
SessionLookup = Callable[..., Dependency]


def log_deferred_failure(ex: BaseException):
    logger.error("Deferred injection failed", exc_info=ex)


class Scheduler(Protocol):
    def schedule(self, work: Callable[[], Awaitable[Any]]) -> None: ...

    async def drain(self) -> None: ...


class AsyncioScheduler:
    """Runs detached work on the asyncio event loop.

    Work scheduled while a loop is running starts on the loop's next turn.
    Work scheduled without a running loop, typically while modules are being
    imported, waits until ``drain()`` is awaited.
    """

    def __init__(self):
        self._waiting: deque[Callable[[], Awaitable[Any]]] = deque()
        self._tasks: set[asyncio.Task] = set()

    def _start(self, loop: asyncio.AbstractEventLoop, work: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        task = loop.create_task(work())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def schedule(self, work: Callable[[], Awaitable[Any]]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, deferring %s until drain()", work)
            self._waiting.append(work)
            return

        self._start(loop, work)

    async def drain(self) -> None:
        loop = asyncio.get_running_loop()
        while self._waiting or self._tasks:
            while self._waiting:
                self._start(loop, self._waiting.popleft())
            await asyncio.gather(*list(self._tasks))


@dataclass(kw_only=True)
class InjectorSettings:
    default_lifespan: Lifespan = Lifespan.singleton
    container_name: str | None = None


class Injector:
    """Declares dependencies and runs injection sessions against a registry.

    Exactly one session container is current at a time. Beginning a session
    replaces the current one, and resolving a root through the session
    releases it.
    """

    def __init__(
        self,
        *,
        registry: DescriptorRegistry | None = None,
        reflector: TypeReflector | None = None,
        scheduler: Scheduler | None = None,
        error_sink: ErrorSink = log_deferred_failure,
        settings: InjectorSettings | None = None,
    ):
        self.settings = settings or InjectorSettings()
        self.registry = registry if registry is not None else DescriptorRegistry()
        self.reflector = reflector or TypingReflector()
        self.scheduler = scheduler or AsyncioScheduler()
        self.error_sink = error_sink
        self.builder = DescriptorBuilder(self.registry, self.reflector)
        self.registrar = GraphRegistrar(self.registry)
        self._container: Container | None = None

    @property
    def current_container(self) -> Container | None:
        return self._container

    def begin_session(self, name: str | None = None, lifespan: Lifespan | None = None) -> SessionLookup:
        if self._container is not None:
            logger.debug("Replacing unfinished session container %s", self._container.name)

        self._container = Container(
            name=name or self.settings.container_name,
            lifespan=self.settings.default_lifespan if lifespan is None else lifespan,
        )
        logger.debug("Began session with container %s", self._container.name)
        return self.resolve_via_session

    def resolve_via_session(self, target: Any, member_key: str | None = None) -> Dependency:
        # the session ends with this lookup whether or not it succeeds
        container, self._container = self._container, None

        descriptor = self.registry.for_site(target, member_key)
        if descriptor is None or descriptor.identifier is None:
            raise NotDeclaredError(target, member_key)
        if container is None:
            raise NoActiveSessionError()

        self.registrar.register(descriptor, container)
        dependency = container.get_dep(descriptor.identifier)

        logger.debug("Session with container %s resolved %r", container.name, descriptor.identifier)
        return dependency  # type: ignore

    async def _complete_injection(self, dependency: Dependency):
        try:
            await dependency.inject()
        except Exception as ex:
            self.error_sink(ex)

    def trigger_implicit_injection(
        self,
        identifier: Any = None,
        name: str | None = None,
        lifespan: Lifespan | None = None,
    ) -> Callable[[TTarget], TTarget]:
        def decorator(target: TTarget) -> TTarget:
            self.register(identifier)(target)
            self.begin_session(name, lifespan)
            dependency = self.resolve_via_session(_site_of(target))
            self.scheduler.schedule(functools.partial(self._complete_injection, dependency))
            return target

        return decorator

    def register(self, identifier: Any = None, lifespan: Lifespan | None = None) -> Callable[[TTarget], TTarget]:
        """Declare a class, function or static method as a dependency.

        Classes also declare every annotated member marked with ``Inject``
        as a property dependency, assigned after construction. A ``property``
        with a setter is declared the same way once its class is created.
        """

        def decorator(target: TTarget) -> TTarget:
            if isinstance(target, property):
                return _InjectedAccessor(target, self.builder, identifier, lifespan)  # type: ignore

            subject = _site_of(target)
            self.builder.declare_root(subject, identifier, lifespan)
            if inspect.isclass(subject):
                for member_key, info in self.reflector.member_types(subject).items():
                    if info.marker is not None:
                        self.builder.declare_property(subject, member_key, info.identifier, info.lifespan)
            return target

        return decorator

    def register_param(
        self, index: int, identifier: Any, lifespan: Lifespan | None = None
    ) -> Callable[[TTarget], TTarget]:
        """Declare the dependency of one constructor or factory parameter explicitly.

        Apply it below ``register`` so the position is declared before the
        remaining parameters are reflected.
        """

        def decorator(target: TTarget) -> TTarget:
            subject = _site_of(target)
            params = self.reflector.param_types(subject)
            param_type = params[index].annotation if index < len(params) else None
            self.builder.declare_parameter(param_type, index, self.builder.site(subject), identifier, lifespan)
            return target

        return decorator

    async def run_pending(self) -> None:
        await self.scheduler.drain()


def _site_of(target: Any) -> Any:
    if isinstance(target, staticmethod):
        return target.__func__
    return target


class _InjectedAccessor(property):
    """A property declared as a dependency when its owning class is created."""

    def __init__(self, accessor: property, builder: DescriptorBuilder, identifier: Any, lifespan: Lifespan | None):
        super().__init__(accessor.fget, accessor.fset, accessor.fdel, accessor.__doc__)
        self._builder = builder
        self._identifier = identifier
        self._lifespan = lifespan

    def __set_name__(self, owner: type, name: str):
        if self.fset is None:
            raise TypeError(f"{owner.__name__}.{name} has no setter and cannot be injected")
        self._builder.declare_property(owner, name, self._identifier, self._lifespan)
