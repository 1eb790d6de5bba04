"""Error kinds raised at the script-call boundary."""

from __future__ import annotations


class HostError(Exception):
    """Base class for all errors that fail the current script call."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class UnknownTypeError(HostError, LookupError):
    """A type name is not registered."""


class TypeMismatchError(HostError, TypeError):
    """A value's shape or category does not match the expected type."""

    @classmethod
    def expected(cls, want: str, got: str) -> TypeMismatchError:
        return cls(f"{want} expected, got {got}")


class CyclicValueError(HostError, ValueError):
    """A compound value refers to itself during conversion."""


class ValidationError(HostError, ValueError):
    """A descriptor-bound property, enum, or class check failed."""

    def __init__(
        self,
        message: str,
        class_name: str | None = None,
        property_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.class_name = class_name
        self.property_name = property_name


class UnresolvedReferenceError(HostError, LookupError):
    """A descriptor lookup for a class or enum failed."""


class FormatUnsupportedError(HostError, ValueError):
    """A format cannot encode or decode the requested value."""


class SourceFailureError(HostError):
    """Resolving or storing bytes through a source failed."""


def prefixed_error(prefix: str, err: HostError) -> HostError:
    """Return a copy of ``err`` with ``prefix`` before its message.

    Attributes of the original, such as the class and property names of a
    ValidationError, are carried over.
    """
    wrapped = type(err)(f"{prefix}: {err.message}")
    for key, value in vars(err).items():
        if key != "message":
            setattr(wrapped, key, value)
    return wrapped


def field_error(name: str, err: HostError) -> HostError:
    """Return a copy of ``err`` whose message names the failing field."""
    return prefixed_error(f"field {name}", err)
