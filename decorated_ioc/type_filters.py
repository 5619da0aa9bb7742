import collections.abc
import types
import typing
from typing import Any, ForwardRef, TypeVar

from theutilitybelt.functional.predicate import predicate

from .markers import EMPTY

SCALAR_TYPES = (int, float, complex, str, bytes, bool, object, type(None))
CONTAINER_TYPES = (list, dict, tuple, set, frozenset)
FUNCTION_TYPES = (
    collections.abc.Callable,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.LambdaType,
)


def _origin(t: Any):
    return typing.get_origin(t) or t


def _is_unreflected(t: Any):
    """
    Nothing usable was reflected: a missing annotation, a string or forward
    reference that could not be evaluated, or a bare type variable.
    """
    return t is EMPTY or t is None or isinstance(t, (str, ForwardRef, TypeVar))


def _is_scalar(t: Any):
    return t is Any or any(t is s for s in SCALAR_TYPES)


def _is_builtin_container(t: Any):
    return any(_origin(t) is c for c in CONTAINER_TYPES)


def _is_function_type(t: Any):
    return any(_origin(t) is f for f in FUNCTION_TYPES)


is_unreflected = predicate(_is_unreflected)
is_scalar = predicate(_is_scalar)
is_builtin_container = predicate(_is_builtin_container)
is_function_type = predicate(_is_function_type)

# types with no unique identity, these need an explicit identifier
is_simple_type = is_unreflected | is_scalar | is_builtin_container | is_function_type
