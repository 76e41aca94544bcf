"""Two-variant result type returned by every external-call wrapper."""

from dataclasses import dataclass
from typing import Generic, NoReturn, TypeVar, Union

from backend.docchat.errors import ExternalServiceError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful call carrying its payload."""

    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    """Failed call carrying a typed error."""

    error: ExternalServiceError

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> NoReturn:
        raise self.error


CallResult = Union[Ok[T], Err]
