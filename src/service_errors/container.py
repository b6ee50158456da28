"""Service container that hands each service its error namespace.

A service is a factory function carrying ``ServiceMeta``. The container
declares every service's errors exactly once at startup, then builds services
on demand, giving each one its dependencies and its namespace as ``Error``::

    @service("ImageService", deps=("storage",), errors={
        "UnsupportedImageFormat": (400, lambda format: f'Unsupported image format: "{format}"'),
    })
    def image_service(inject: Injector) -> ImageService:
        package = inject(image_service)
        return ImageService(package.storage, package.Error)

    container = ServiceContainer({"storage": storage, "image_service": image_service})
    container.start()
    images = container.get("image_service")
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType, SimpleNamespace
from typing import Any, Protocol

from service_errors.declaration import ErrorNamespace, ErrorSpec, declare
from service_errors.logging import get_logger
from service_errors.registry import ErrorRegistry
from service_errors.registry import registry as default_registry

logger = get_logger(__name__)


@dataclass(frozen=True)
class ServiceMeta:
    """What the container needs to know about a service."""

    # Service name, usually PascalCase. Also the prefix of its error names.
    name: str
    # Symbols of the services this one depends on.
    deps: tuple[str, ...] = ()
    options: Mapping[str, Any] = field(default_factory=dict)
    # Passed to declare() as the service's error specs.
    errors: Mapping[str, ErrorSpec] = field(default_factory=dict)


type Injector = Callable[["ServiceFactory | str"], SimpleNamespace]


class ServiceFactory(Protocol):
    meta: ServiceMeta

    def __call__(self, inject: Injector) -> Any: ...


def service[F: Callable[..., Any]](
    name: str,
    *,
    deps: tuple[str, ...] = (),
    options: Mapping[str, Any] | None = None,
    errors: Mapping[str, ErrorSpec] | None = None,
) -> Callable[[F], F]:
    """Attach ``ServiceMeta`` to a factory function."""

    def decorator(factory: F) -> F:
        factory.meta = ServiceMeta(  # type: ignore[attr-defined]
            name=name,
            deps=deps,
            options=dict(options or {}),
            errors=dict(errors or {}),
        )
        return factory

    return decorator


ContainerError = declare(
    "ServiceContainer",
    {
        "UnknownService": lambda symbol: f'No service is registered as "{symbol}"',
        "CircularDependency": lambda chain: (
            f"Circular service dependency: {' -> '.join(chain)}"
        ),
    },
)


class ServiceContainer:
    """Owns the services of an application and their error namespaces."""

    def __init__(
        self,
        factories: Mapping[str, ServiceFactory],
        registry: ErrorRegistry | None = None,
    ) -> None:
        self._factories = dict(factories)
        self._registry = default_registry if registry is None else registry
        self._namespaces: dict[str, ErrorNamespace] = {}
        self._instances: dict[str, Any] = {}
        self._resolving: list[str] = []

    @property
    def registry(self) -> ErrorRegistry:
        return self._registry

    def start(self) -> None:
        """Declare the errors of every service. Safe to call more than once."""
        for symbol in self._factories:
            self._namespace_for(symbol)

    def errors(self, selector: "ServiceFactory | str") -> ErrorNamespace:
        """Return the error namespace of a service, by factory or service name."""
        return self._namespace_for(self._symbol_for(selector))

    def inject(self, selector: "ServiceFactory | str") -> SimpleNamespace:
        """Build the injection package of a service.

        The package exposes ``Error``, ``options`` and every dependency under
        its symbol.
        """
        symbol = self._symbol_for(selector)
        meta = self._factories[symbol].meta
        deps = {dep: self.get(dep) for dep in meta.deps}
        return SimpleNamespace(
            Error=self._namespace_for(symbol),
            options=MappingProxyType(dict(meta.options)),
            **deps,
        )

    def get(self, symbol: str) -> Any:
        """Return the service registered as ``symbol``, building it on first use."""
        if symbol in self._instances:
            return self._instances[symbol]
        if symbol not in self._factories:
            raise ContainerError.UnknownService(symbol=symbol)
        if symbol in self._resolving:
            raise ContainerError.CircularDependency(chain=[*self._resolving, symbol])

        self._resolving.append(symbol)
        try:
            instance = self._factories[symbol](self.inject)
        finally:
            self._resolving.pop()
        self._instances[symbol] = instance
        logger.debug("service_created", service=symbol)
        return instance

    def _symbol_for(self, selector: "ServiceFactory | str") -> str:
        """Find a service by factory, symbol or service name."""
        if isinstance(selector, str) and selector in self._factories:
            return selector
        for symbol, factory in self._factories.items():
            if factory is selector or factory.meta.name == selector:
                return symbol
        raise ContainerError.UnknownService(symbol=getattr(selector, "__name__", selector))

    def _namespace_for(self, symbol: str) -> ErrorNamespace:
        namespace = self._namespaces.get(symbol)
        if namespace is None:
            meta = self._factories[symbol].meta
            namespace = declare(meta.name, meta.errors, registry=self._registry)
            self._namespaces[symbol] = namespace
        return namespace
