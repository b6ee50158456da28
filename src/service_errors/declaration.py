"""Declaring error kinds.

Service authors call ``declare`` once per service::

    Error = declare("ImageService", {
        "UnsupportedImageFormat": (400, lambda format: f'Unsupported image format: "{format}"'),
        "DecodeFailed": "Image could not be decoded",
    })

    raise Error.UnsupportedImageFormat(format="abc")
    raise Error.DecodeFailed(exc)
    raise Error("Something ad hoc went wrong")

Each kind is registered under ``{prefix}_{short_name}Error`` and subclasses the
service's base kind, which is registered under the bare prefix.
``declare_error`` is the primitive underneath.
"""

import inspect
from collections.abc import Callable, Iterator, Mapping
from typing import Any, NoReturn

from service_errors.errors import CustomError, StatusCode, shadowed_fields
from service_errors.registry import ErrorRegistry
from service_errors.registry import registry as default_registry

type MessageTemplate = str | Callable[..., str]
type ErrorSpec = MessageTemplate | tuple[int, MessageTemplate]

ERROR_SUFFIX = "Error"


def _param_names(message: Callable[..., str]) -> tuple[str, ...]:
    """Names of the keyword parameters a message callable accepts."""
    try:
        signature = inspect.signature(message)
    except (TypeError, ValueError):
        return ()
    return tuple(
        param.name
        for param in signature.parameters.values()
        if param.kind in (param.POSITIONAL_OR_KEYWORD, param.KEYWORD_ONLY)
    )


def _check_params(name: str, message: MessageTemplate, base: type[CustomError]) -> None:
    if isinstance(message, str) or not callable(message):
        return
    clashes = shadowed_fields(base, _param_names(message))
    if clashes:
        raise TypeError(
            f"{name} cannot take parameters named {', '.join(clashes)}, "
            "they are attributes of every error"
        )


def declare_error(
    name: str,
    status: int,
    message: MessageTemplate,
    *,
    base: type[CustomError] = CustomError,
    registry: ErrorRegistry | None = None,
) -> type[CustomError]:
    """Create a kind called ``name`` and register it.

    ``message`` is either a fixed string or a callable that builds the message
    from keyword parameters. With a callable, the parameters are passed at
    construction and every one of them (except the reserved ``message``,
    ``status``, ``inner_error`` and ``name``) becomes an attribute of the
    instance. With a string, the kind takes no parameters.

    In both cases the inner error is the only positional argument, and
    ``status=`` overrides the declared status for one instance.

    Parameters named like an attribute every error has (``stack``,
    ``fields``, ``to_dict``, ``args``, ...) are rejected with ``TypeError``.

    Raises:
        DuplicateDeclarationError: ``name`` is already registered.
        TypeError: a parameter would hide an attribute of every error.
        LateDeclarationError: the registry has been sealed.
    """
    registry = default_registry if registry is None else registry
    status = StatusCode(status)

    if isinstance(message, str):
        text = message

        def make_message(**params: Any) -> str:
            if params:
                raise TypeError(f"{name}() takes no parameters, got {', '.join(params)}")
            return text

        _names: tuple[str, ...] = ()
    elif callable(message):
        _check_params(name, message, base)
        make_message = message
        _names = _param_names(message)
    else:
        raise TypeError(f"Message for {name} must be a string or a callable, got {message!r}")

    class DeclaredError(base, error_name=name, status=status):  # type: ignore[valid-type,misc]
        param_names = _names

        def __init__(
            self,
            inner_error: BaseException | None = None,
            *,
            status: int | None = None,
            **params: Any,
        ) -> None:
            super().__init__(
                make_message(**params),
                status=status,
                inner_error=inner_error,
                fields=params,
            )

    DeclaredError.__name__ = DeclaredError.__qualname__ = name
    registry.register(DeclaredError, status, name)
    return DeclaredError


class ErrorNamespace(Mapping[str, type[CustomError]]):
    """The kinds declared for one service prefix.

    Kinds are reachable as attributes or items by short name. Calling the
    namespace builds the service's base kind, for ad hoc errors that don't
    merit a kind of their own. The namespace cannot be changed after creation.
    """

    __slots__ = ("_prefix", "_base", "_kinds")

    def __init__(
        self,
        prefix: str,
        base: type[CustomError],
        kinds: Mapping[str, type[CustomError]],
    ) -> None:
        object.__setattr__(self, "_prefix", prefix)
        object.__setattr__(self, "_base", base)
        object.__setattr__(self, "_kinds", dict(kinds))

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def base(self) -> type[CustomError]:
        return self._base

    def __getitem__(self, short_name: str) -> type[CustomError]:
        return self._kinds[short_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._kinds)

    def __len__(self) -> int:
        return len(self._kinds)

    def __getattr__(self, short_name: str) -> type[CustomError]:
        if short_name.startswith("_"):
            raise AttributeError(short_name)
        try:
            return self._kinds[short_name]
        except KeyError:
            raise AttributeError(
                f"{self._prefix} declares no error named {short_name!r}"
            ) from None

    def __setattr__(self, name: str, value: object) -> NoReturn:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name: str) -> NoReturn:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __call__(
        self,
        message: str,
        *,
        status: int | None = None,
        inner_error: BaseException | None = None,
    ) -> CustomError:
        return self._base(message, status=status, inner_error=inner_error)

    def __dir__(self) -> list[str]:
        return [*super().__dir__(), *self._kinds]

    def __repr__(self) -> str:
        return f"ErrorNamespace({self._prefix!r}, {list(self._kinds)})"


def _parse_spec(short_name: str, spec: ErrorSpec) -> tuple[StatusCode, MessageTemplate]:
    if isinstance(spec, str) or callable(spec):
        return StatusCode.INTERNAL_ERROR, spec
    if isinstance(spec, (tuple, list)) and len(spec) == 2:
        status, message = spec
        if isinstance(message, str) or callable(message):
            return StatusCode(status), message
    raise TypeError(
        f"Error spec for {short_name!r} must be a message or a (status, message) pair, "
        f"got {spec!r}"
    )


def declare(
    prefix: str | Callable[..., Any],
    specs: Mapping[str, ErrorSpec],
    *,
    registry: ErrorRegistry | None = None,
) -> ErrorNamespace:
    """Declare the error kinds of one service and return them as a namespace.

    ``prefix`` is a service name, or a class or function whose ``__name__`` is
    used. ``specs`` maps short names to a message (status 500) or a
    ``(status, message)`` pair. Short names must not end with "Error", the
    suffix is appended to the global name automatically. Short names that
    would hide an attribute of the namespace (``base``, ``prefix``, ``get``,
    ``items``, ...) or start with an underscore are rejected.

    Nothing is registered unless the whole declaration is valid.

    Raises:
        MetaError.UnneededSuffix: a short name ends with "Error".
        ValueError: a short name would hide a namespace attribute, or a status is unknown.
        TypeError: a spec is malformed or a message takes a reserved parameter.
        DuplicateDeclarationError: one of the global names is already taken.
        LateDeclarationError: the registry has been sealed.
    """
    registry = default_registry if registry is None else registry
    prefix_name = prefix if isinstance(prefix, str) else prefix.__name__

    for short_name in specs:
        if short_name.endswith(ERROR_SUFFIX):
            raise MetaError.UnneededSuffix(target_name=short_name)
        if short_name.startswith("_") or short_name in dir(ErrorNamespace):
            raise ValueError(
                f"{short_name!r} cannot name an error of {prefix_name}, "
                "it is private or an attribute of the namespace"
            )
    parsed = {short_name: _parse_spec(short_name, spec) for short_name, spec in specs.items()}
    global_names = {short_name: f"{prefix_name}_{short_name}{ERROR_SUFFIX}" for short_name in specs}
    for short_name, (_, message) in parsed.items():
        _check_params(global_names[short_name], message, CustomError)
    registry.ensure_available(prefix_name, *global_names.values())

    class ServiceError(CustomError, error_name=prefix_name):
        pass

    ServiceError.__name__ = ServiceError.__qualname__ = prefix_name
    registry.register(ServiceError, StatusCode.INTERNAL_ERROR, prefix_name)

    kinds = {
        short_name: declare_error(
            global_names[short_name], status, message, base=ServiceError, registry=registry
        )
        for short_name, (status, message) in parsed.items()
    }
    return ErrorNamespace(prefix_name, ServiceError, kinds)


MetaError = declare(
    CustomError,
    {
        "UnneededSuffix": lambda target_name: (
            f'There is no need to end CustomError declaration for "{target_name}" names '
            'with "Error". The suffix will be appended automatically'
        ),
    },
)
