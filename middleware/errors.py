from __future__ import annotations

from typing import Any, ClassVar, Dict, Iterator, Optional, Type, TypeVar

E = TypeVar("E", bound=BaseException)

INNER_ERROR = "inner_error"


class MiddlewareError(Exception):
    """
    Base class for every layer's error type.

    A layer's error is either one of its own variants (a subclass with a fixed
    ``CODE``) or the single wrapping variant built by ``from_err``, which holds
    the inner layer's error unmodified in ``inner``.
    """

    CODE: ClassVar[str] = "middleware_error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        data: Optional[Dict[str, Any]] = None,
        inner: Optional[BaseException] = None,
    ) -> None:
        self.message = message or (type(self).__doc__ or "").strip() or self.CODE
        self.data: Dict[str, Any] = dict(data or {})
        self.inner = inner
        self.code = INNER_ERROR if inner is not None else self.CODE
        super().__init__(self.message)

    @classmethod
    def from_err(cls, inner: BaseException) -> "MiddlewareError":
        """The wrapping variant: carries a failure from the layer beneath."""
        return cls(str(inner) or type(inner).__name__, inner=inner)

    def as_inner(self) -> Optional[BaseException]:
        """Unwrap exactly one level; None unless this is the wrapping variant."""
        return self.inner

    def find(self, error_type: Type[E]) -> Optional[E]:
        return find_error(self, error_type)


def iter_error_chain(err: BaseException) -> Iterator[BaseException]:
    """Yield ``err`` and then each wrapped inner error, outermost first."""
    current: Optional[BaseException] = err
    while current is not None:
        yield current
        current = current.as_inner() if isinstance(current, MiddlewareError) else None


def find_error(err: BaseException, error_type: Type[E]) -> Optional[E]:
    """
    Walk the wrapped-inner chain one level at a time and return the first
    error of ``error_type``, or None when no layer produced one.
    """
    for e in iter_error_chain(err):
        if isinstance(e, error_type):
            return e
    return None
