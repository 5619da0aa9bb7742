from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Annotated, Any, NamedTuple, Protocol, get_origin, get_type_hints

from .markers import EMPTY, Inject

logger = logging.getLogger(__name__)

_POSITIONAL_KINDS = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


class ParamInfo(NamedTuple):
    name: str
    annotation: Any
    marker: Inject | None = None

    @property
    def identifier(self):
        return self.marker.identifier if self.marker else None

    @property
    def lifespan(self):
        return self.marker.lifespan if self.marker else None


class TypeReflector(Protocol):
    def param_types(self, target: Any, member_key: str | None = None) -> list[ParamInfo]: ...

    def return_type(self, target: Any, member_key: str | None = None) -> Any: ...

    def member_types(self, owner: type) -> dict[str, ParamInfo]: ...

    def member_type(self, owner: type, member_key: str) -> ParamInfo: ...


def get_subject(target: Any, member_key: str | None = None) -> Any:
    if member_key is None:
        return target
    return getattr(target, member_key)


def _split_annotation(annotation: Any) -> tuple[Any, Inject | None]:
    if get_origin(annotation) is Annotated:
        marker = next((m for m in annotation.__metadata__ if isinstance(m, Inject)), None)
        return annotation.__origin__, marker
    return annotation, None


def _type_hints(subject: Any) -> dict[str, Any]:
    try:
        return get_type_hints(subject, include_extras=True)
    except (NameError, TypeError) as ex:
        logger.debug("Could not evaluate type hints of %s: %s", subject, ex)
        return {}


class TypingReflector:
    """Reflects dependency metadata from ``inspect`` signatures and ``typing`` hints.

    Parameters annotated with ``Annotated[T, Inject(...)]`` carry the marker
    alongside the unwrapped type. Anything that cannot be evaluated reflects
    as ``EMPTY``.
    """

    def param_types(self, target: Any, member_key: str | None = None) -> list[ParamInfo]:
        subject = get_subject(target, member_key)
        hints_fn: Callable = subject.__init__ if inspect.isclass(subject) else subject
        hints = _type_hints(hints_fn)
        try:
            signature = inspect.signature(subject)
        except (TypeError, ValueError):
            return []

        infos = []
        for name, param in signature.parameters.items():
            if param.kind not in _POSITIONAL_KINDS:
                continue
            annotation, marker = _split_annotation(hints.get(name, EMPTY))
            infos.append(ParamInfo(name=name, annotation=annotation, marker=marker))
        return infos

    def return_type(self, target: Any, member_key: str | None = None) -> Any:
        subject = get_subject(target, member_key)
        if inspect.isclass(subject):
            return subject
        annotation, _ = _split_annotation(_type_hints(subject).get("return", EMPTY))
        return annotation

    def member_types(self, owner: type) -> dict[str, ParamInfo]:
        infos = {}
        for name, hint in _type_hints(owner).items():
            annotation, marker = _split_annotation(hint)
            infos[name] = ParamInfo(name=name, annotation=annotation, marker=marker)
        return infos

    def member_type(self, owner: type, member_key: str) -> ParamInfo:
        info = self.member_types(owner).get(member_key)
        if info is not None:
            return info

        accessor = inspect.getattr_static(owner, member_key, None)
        if isinstance(accessor, property):
            return self.accessor_type(accessor, member_key)
        return ParamInfo(name=member_key, annotation=EMPTY)

    def accessor_type(self, accessor: property, member_key: str) -> ParamInfo:
        """The type an accessor accepts, taken from the setter value or else the getter return."""
        if accessor.fset is not None:
            params = self.param_types(accessor.fset)
            if len(params) > 1 and params[1].annotation is not EMPTY:
                return params[1]._replace(name=member_key)
        if accessor.fget is not None:
            annotation, marker = _split_annotation(_type_hints(accessor.fget).get("return", EMPTY))
            return ParamInfo(name=member_key, annotation=annotation, marker=marker)
        return ParamInfo(name=member_key, annotation=EMPTY)
