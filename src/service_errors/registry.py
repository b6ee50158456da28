"""Process-wide registry of declared error names.

Every declared kind is registered under its global name at declaration time,
so two services picking the same name fail at startup instead of at first
raise. Entries are never removed or replaced.

There is no lock. Declarations are expected to run during single-threaded
startup, after which the registry is sealed; callers that declare from several
threads must serialize those calls themselves.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from service_errors.errors import CustomError, StatusCode
from service_errors.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ErrorMetadata:
    """Registry entry for one declared kind."""

    name: str
    status: StatusCode
    constructor: type[CustomError]


class DuplicateDeclarationError(
    CustomError, error_name="CustomError_DuplicateDeclarationError", status=500
):
    """Raised when a name is registered twice."""

    def __init__(self, target_name: str) -> None:
        super().__init__(
            f'Error "{target_name}" has already been declared',
            fields={"target_name": target_name},
        )


class LateDeclarationError(CustomError, error_name="CustomError_LateDeclarationError", status=500):
    """Raised when a kind is declared after the registry has been sealed."""

    def __init__(self, target_name: str) -> None:
        super().__init__(
            f'Error "{target_name}" was declared after the error registry was sealed. '
            "Declare errors while the service is being initialized",
            fields={"target_name": target_name},
        )


class ErrorRegistry(Mapping[str, ErrorMetadata]):
    """Append-only mapping from global error name to its metadata."""

    def __init__(self) -> None:
        self._errors: dict[str, ErrorMetadata] = {}
        self._sealed = False

    def __getitem__(self, name: str) -> ErrorMetadata:
        return self._errors[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def register(
        self,
        constructor: type[CustomError],
        status: int = StatusCode.INTERNAL_ERROR,
        name: str | None = None,
    ) -> ErrorMetadata:
        """Add a kind under ``name`` (defaults to the kind's declared name).

        Raises:
            LateDeclarationError: the registry has been sealed.
            DuplicateDeclarationError: ``name`` is already registered.
        """
        name = name or constructor.name
        if self._sealed:
            raise LateDeclarationError(name)
        self.ensure_available(name)

        metadata = ErrorMetadata(name=name, status=StatusCode(status), constructor=constructor)
        self._errors[name] = metadata
        logger.debug("error_declared", error=name, status=int(metadata.status))
        return metadata

    def ensure_available(self, *names: str) -> None:
        """Raise ``DuplicateDeclarationError`` for the first name already taken."""
        for name in names:
            if name in self._errors:
                logger.error("duplicate_error_declaration", error=name)
                raise DuplicateDeclarationError(name)

    def seal(self) -> None:
        """End the declaration phase. Later registrations raise ``LateDeclarationError``."""
        if not self._sealed:
            self._sealed = True
            logger.info("error_registry_sealed", errors=len(self._errors))

    def by_status(self, status: int) -> list[ErrorMetadata]:
        """Return every entry declared with ``status``, in declaration order."""
        return [metadata for metadata in self._errors.values() if metadata.status == status]


registry = ErrorRegistry()
registry.register(DuplicateDeclarationError)
registry.register(LateDeclarationError)
