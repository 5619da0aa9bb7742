from __future__ import annotations

from typing import Any


class DecoratedIocError(Exception):
    """Base class for every error raised by decorated_ioc."""


class MissingIdentifierError(DecoratedIocError):
    """A simple type was declared as a dependency without an explicit identifier.

    Types such as ``int`` or ``str`` carry no unique identity, so they cannot
    address a dependency on their own. Annotate them with ``Inject("my-id")``
    or pass an identifier to the declaration.
    """

    def __init__(self, dependency_type: Any, owner: Any = None, position: int | str | None = None):
        self.dependency_type = dependency_type
        self.owner = owner
        self.position = position

    def __str__(self):
        where = ""
        if self.owner is not None:
            where = f" on {self.owner}" if self.position is None else f" at {self.position!r} of {self.owner}"
        return (
            f"type {self.dependency_type!r}{where} requires a custom identifier, "
            "consider annotating it with Inject('my-id')"
        )


class UnknownKindError(DecoratedIocError):
    def __init__(self, descriptor: Any):
        self.descriptor = descriptor

    def __str__(self):
        return f"Unknown dependency kind {self.descriptor.kind!r} for {self.descriptor.identifier!r}"


class IncompleteDescriptorError(DecoratedIocError):
    """A constructor or factory still has undeclared parameter positions."""

    def __init__(self, identifier: Any, missing_positions: list[int]):
        self.identifier = identifier
        self.missing_positions = missing_positions

    def __str__(self):
        return f"{self.identifier!r} has no dependency declared for parameter positions {self.missing_positions}"


class IdentifierConflictError(DecoratedIocError):
    def __init__(self, target: Any, current: Any, requested: Any):
        self.target = target
        self.current = current
        self.requested = requested

    def __str__(self):
        return f"{self.target} is already declared as {self.current!r}, cannot redeclare it as {self.requested!r}"


class NotDeclaredError(DecoratedIocError):
    def __init__(self, target: Any, member_key: str | None = None):
        self.target = target
        self.member_key = member_key

    def __str__(self):
        member = f".{self.member_key}" if self.member_key else ""
        return f"{self.target}{member} was never declared as a dependency, decorate it with register()"


class NoActiveSessionError(DecoratedIocError):
    def __str__(self):
        return "No injection session is active, call begin_session() or injectable_factory() first"


class DuplicateRegistrationError(DecoratedIocError):
    def __init__(self, identifier: Any, container_name: str):
        self.identifier = identifier
        self.container_name = container_name

    def __str__(self):
        return f"{self.identifier!r} is already registered with container {self.container_name}"


class CircularDependencyError(DecoratedIocError):
    def __init__(self, chain: tuple[Any, ...]):
        self.chain = chain

    def __str__(self):
        return "Circular dependency detected: " + " -> ".join(repr(i) for i in self.chain)


class CannotResolveError(DecoratedIocError):
    def __init__(self, identifier: Any):
        self.identifier = identifier
        self.dependants: list[Any] = []

    def append(self, dependant: Any):
        self.dependants.append(dependant)

    @staticmethod
    def print_dependency(identifier: Any):
        content = f"identifier: {identifier!r}"
        width = len(content)
        top_border = "┌" + "─" * (width + 2) + "┐"
        bottom_border = "└" + "─" * (width + 2) + "┘"
        return f"{top_border}\n│ {content} │\n{bottom_border}"

    @property
    def message(self):
        if self.dependants:
            return f"Failed to resolve {self.dependants[0]!r} could not find {self.identifier!r}"
        return f"Failed to resolve {self.identifier!r}, it is not registered"

    @property
    def dependency_chain(self):
        arrow = "↑\n↑\n↑\n"
        chain = f"{CannotResolveError.print_dependency(self.identifier)}\n"
        for dependant in self.dependants:
            chain += f"{arrow}{CannotResolveError.print_dependency(dependant)}\n"
        return chain

    def __str__(self):
        return f"\n{self.message}\n\nDependency chain:\n{self.dependency_chain}"
