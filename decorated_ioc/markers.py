from __future__ import annotations

from typing import TYPE_CHECKING, Any, NamedTuple

if TYPE_CHECKING:
    from .container import Lifespan


class _empty:  # noqa: N801
    def __bool__(self):
        return False

    def __repr__(self):
        return "EMPTY"


EMPTY = _empty()


class Inject(NamedTuple):
    """Marks a parameter or class member for injection.

    Attach it with ``typing.Annotated`` to give the dependency an explicit
    identifier, which simple types such as ``int`` or ``str`` require:

        class Service:
            retries: Annotated[int, Inject("retries")]

            def __init__(self, repo: Repository, url: Annotated[str, Inject("db-url")]):
                ...

    A bare ``Inject()`` keeps the annotated type as the identifier.
    """

    identifier: Any = None
    lifespan: Lifespan | None = None
