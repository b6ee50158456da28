"""Base error type shared by every declared error kind.

Every kind carries a declared name, a status shaped like an HTTP status code,
an optional inner error and a stack string that already contains the whole
cause chain. Instances serialize to plain dicts so they can be logged or sent
over the wire without losing message, stack or cause.
"""

import os
import sys
import traceback
from collections.abc import Callable, Iterable, Mapping
from enum import IntEnum
from typing import Any, ClassVar

from service_errors.schemas.error import SerializedError

RESERVED_FIELDS = frozenset({"message", "status", "inner_error", "name"})
# Set on every instance in addition to the reserved fields
_INSTANCE_ATTRIBUTES = frozenset({"stack", "_extra_keys"})

TRACE_INDENT = "    "
TRACE_DIVIDER = TRACE_INDENT + "=" * 80

# Frames from these modules are trimmed from construction stacks
_ENGINE_DIR = os.path.dirname(__file__)
_ENGINE_MODULES = frozenset({"errors.py", "registry.py", "declaration.py"})


class StatusCode(IntEnum):
    """Closed set of statuses an error can carry."""

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    INTERNAL_ERROR = 500

    @classmethod
    def coerce(cls, value: object) -> "StatusCode":
        """Map any value onto the set, treating unknown or missing values as 500."""
        try:
            return cls(value)
        except (TypeError, ValueError):
            return cls.INTERNAL_ERROR


def _is_engine_frame(filename: str) -> bool:
    return (
        os.path.dirname(filename) == _ENGINE_DIR
        and os.path.basename(filename) in _ENGINE_MODULES
    )


def _construction_stack() -> str:
    frames = traceback.extract_stack()
    while frames and _is_engine_frame(frames[-1].filename):
        frames.pop()
    return "Stack (most recent call last):\n" + "".join(traceback.format_list(frames))


def _indent(text: str) -> str:
    return "\n".join(TRACE_INDENT + line for line in text.split("\n"))


def trace_of(exc: BaseException) -> str:
    """Return the printable trace of any exception, declared or native."""
    if isinstance(exc, CustomError):
        return exc.stack
    return "".join(traceback.format_exception(exc)).rstrip("\n")


def serialize_error(exc: BaseException) -> dict[str, Any]:
    """Turn an exception into a dict, keeping message and trace visible.

    Declared errors serialize themselves (cause chain included). Native
    exceptions become ``{"name", "message", "stack"}``.
    """
    if isinstance(exc, CustomError):
        return exc.to_dict()
    return {"name": type(exc).__name__, "message": str(exc), "stack": trace_of(exc)}


def shadowed_fields(kind: type["CustomError"], names: Iterable[str]) -> list[str]:
    """Parameter names that would replace an attribute of ``kind`` if copied onto it."""
    return sorted(
        name
        for name in names
        if name not in RESERVED_FIELDS and (name in _INSTANCE_ATTRIBUTES or hasattr(kind, name))
    )


def _pickle_reference(kind: type["CustomError"]) -> "type[CustomError] | str":
    """The class itself when pickle can import it, otherwise its registered name."""
    module = sys.modules.get(kind.__module__)
    if getattr(module, kind.__qualname__, None) is kind:
        return kind
    # registry imports this module
    from service_errors.registry import registry

    metadata = registry.get(kind.name)
    if metadata is not None and metadata.constructor is kind:
        return kind.name
    return kind


def _restore_error(
    kind: "type[CustomError] | str", message: str, state: dict[str, Any]
) -> "CustomError":
    """Rebuild a copied or unpickled error without running its constructor."""
    if isinstance(kind, str):
        from service_errors.registry import registry

        kind = registry[kind].constructor
    error = kind.__new__(kind, message)
    error.__dict__.update(state)
    if error.inner_error is not None:
        error.__cause__ = error.inner_error
    return error


class CustomError(Exception):
    """Base class for all declared errors.

    ``status`` and ``inner_error`` are keyword-only so a call site always says
    which one it passes::

        CustomError("Upstream failed", inner_error=exc)
        CustomError("Nope", status=403)
        CustomError("Upstream refused", inner_error=exc, status=403)

    Subclasses must give their name explicitly, it is what callers switch on::

        class QuotaError(CustomError, error_name="Billing_QuotaError", status=403):
            ...
    """

    name: ClassVar[str] = "CustomError"
    default_status: ClassVar[StatusCode] = StatusCode.INTERNAL_ERROR
    # Keyword parameters of a declared kind's message
    param_names: ClassVar[tuple[str, ...]] = ()

    def __init_subclass__(
        cls,
        *,
        error_name: str | None = None,
        status: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init_subclass__(**kwargs)
        if not error_name:
            raise TypeError(f"{cls.__qualname__} must declare an error_name")
        cls.name = error_name
        if status is not None:
            cls.default_status = StatusCode(status)

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        inner_error: BaseException | None = None,
        fields: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.name = type(self).name  # type: ignore[misc]
        self.status = StatusCode(self.default_status if status is None else status)
        self.inner_error = inner_error
        if inner_error is not None:
            self.__cause__ = inner_error

        self._extra_keys: tuple[str, ...] = ()
        if fields:
            clashes = shadowed_fields(type(self), fields)
            if clashes:
                raise TypeError(
                    f"{self.name} cannot take fields named {', '.join(clashes)}, "
                    "they are attributes of every error"
                )
            self._extra_keys = tuple(key for key in fields if key not in RESERVED_FIELDS)
            for key in self._extra_keys:
                setattr(self, key, fields[key])

        self.stack = f"{_construction_stack()}{self.name}: {message}"
        if inner_error is not None:
            inner_trace = trace_of(inner_error)
            if inner_trace:
                self.stack += f"\n{TRACE_DIVIDER}\n{_indent(inner_trace)}"

    @property
    def fields(self) -> dict[str, Any]:
        """Extra attributes copied from construction parameters."""
        return {key: getattr(self, key) for key in self._extra_keys}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "message": self.message,
            "status": int(self.status),
            "stack": self.stack,
        }
        if self.inner_error is not None:
            data["inner_error"] = serialize_error(self.inner_error)
        data.update(self.fields)
        return data

    def to_json(self, indent: int | None = None) -> str:
        """Render ``to_dict()`` as JSON. Non-JSON field values fall back to ``str``.

        Keys absent from ``to_dict()`` stay absent, fields set to ``None`` are
        written as ``null``.
        """
        return SerializedError.model_validate(self.to_dict()).model_dump_json(
            indent=indent, exclude_unset=True, fallback=str
        )

    @classmethod
    def guard[T](cls, *args: Any, **kwargs: Any) -> Callable[[T], T]:
        """Build a check that passes truthy values through and raises this kind otherwise.

        Arguments are whatever the kind's constructor takes::

            image = Error.ImageNotFound.guard(image_id=image_id)(images.get(image_id))
        """

        def check(value: T) -> T:
            if not value:
                raise cls(*args, **kwargs)
            return value

        return check

    def __reduce__(self) -> tuple[Any, ...]:
        # Exception.__reduce__ would call cls(*args), which declared kinds don't accept
        return _restore_error, (_pickle_reference(type(self)), self.message, dict(self.__dict__))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status={int(self.status)})"
