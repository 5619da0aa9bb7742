"""Decorator driven dependency graphs for an identifier keyed container."""

from .container import Container, Dependency, Lifespan
from .core import (
    DependencyDescriptor,
    DescriptorBuilder,
    DescriptorRegistry,
    GraphRegistrar,
    MemberSet,
    ResolverKind,
)
from .decorators import (
    get_default_injector,
    inject,
    injectable_factory,
    register,
    register_param,
    run_pending,
    set_default_injector,
)
from .exceptions import (
    CannotResolveError,
    CircularDependencyError,
    DecoratedIocError,
    DuplicateRegistrationError,
    IdentifierConflictError,
    IncompleteDescriptorError,
    MissingIdentifierError,
    NoActiveSessionError,
    NotDeclaredError,
    UnknownKindError,
)
from .markers import EMPTY, Inject
from .reflection import ParamInfo, TypeReflector, TypingReflector
from .session import AsyncioScheduler, Injector, InjectorSettings, Scheduler, log_deferred_failure

__all__ = [
    "EMPTY",
    "AsyncioScheduler",
    "CannotResolveError",
    "CircularDependencyError",
    "Container",
    "DecoratedIocError",
    "Dependency",
    "DependencyDescriptor",
    "DescriptorBuilder",
    "DescriptorRegistry",
    "DuplicateRegistrationError",
    "GraphRegistrar",
    "IdentifierConflictError",
    "IncompleteDescriptorError",
    "Inject",
    "Injector",
    "InjectorSettings",
    "Lifespan",
    "MemberSet",
    "MissingIdentifierError",
    "NoActiveSessionError",
    "NotDeclaredError",
    "ParamInfo",
    "ResolverKind",
    "Scheduler",
    "TypeReflector",
    "TypingReflector",
    "UnknownKindError",
    "get_default_injector",
    "inject",
    "injectable_factory",
    "log_deferred_failure",
    "register",
    "register_param",
    "run_pending",
    "set_default_injector",
]
