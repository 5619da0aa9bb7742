"""Module level decorators backed by a process wide ``Injector``.

    @register()
    class Repository:
        def __init__(self, url: Annotated[str, Inject("db-url")]):
            self.url = url

    @inject()
    class App:
        cache: Annotated[Cache, Inject()]

        def __init__(self, repository: Repository):
            self.repository = repository
"""

from __future__ import annotations

from typing import Any

from .container import Lifespan
from .session import Injector

_default_injector = Injector()


def get_default_injector() -> Injector:
    return _default_injector


def set_default_injector(injector: Injector) -> Injector:
    global _default_injector
    previous = _default_injector
    _default_injector = injector
    return previous


def register(identifier: Any = None, lifespan: Lifespan | None = None):
    return _default_injector.register(identifier, lifespan)


def register_param(index: int, identifier: Any, lifespan: Lifespan | None = None):
    return _default_injector.register_param(index, identifier, lifespan)


def inject(identifier: Any = None, name: str | None = None, lifespan: Lifespan | None = None):
    """Declare the decorated class or function and start injecting it right away.

    The injection itself completes on a later event loop turn, failures are
    reported to the injector's error sink.
    """
    return _default_injector.trigger_implicit_injection(identifier, name, lifespan)


def injectable_factory(name: str | None = None, lifespan: Lifespan | None = None):
    """Begin an explicit injection session.

    Returns a lookup that registers the dependency graph of a declared target
    and hands back the container's ``Dependency`` for it.
    """
    return _default_injector.begin_session(name, lifespan)


async def run_pending():
    await _default_injector.run_pending()
