"""Exception hierarchy for catalog decoding.

Structural failures (:class:`CatalogIOError`, :class:`NotACatalogError`) are
raised by the byte sources and the decoder. :class:`InvalidPluralExpressionError`
is raised by the plural-forms compiler. The :class:`~mocatalog.catalog.Catalog`
facade recovers from all of them, so lookup callers never see these.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base exception for all catalog errors."""

    pass


class CatalogIOError(CatalogError):
    """The underlying medium is unreadable, truncated, or out of bounds."""

    def __init__(
        self,
        message: str,
        offset: int | None = None,
        length: int | None = None,
    ) -> None:
        self.offset = offset
        self.length = length
        if offset is not None:
            message = f"{message} (offset={offset}, length={length})"
        super().__init__(message)


class NotACatalogError(CatalogError):
    """The source does not start with a recognized MO magic number."""

    def __init__(self, magic: bytes) -> None:
        self.magic = magic
        super().__init__(f"Not an MO catalog: bad magic {magic.hex() or '<empty>'}")


class InvalidPluralExpressionError(CatalogError):
    """A plural-forms declaration could not be compiled."""

    def __init__(
        self,
        message: str,
        expression: str = "",
        position: int | None = None,
    ) -> None:
        self.expression = expression
        self.position = position
        detail = message
        if position is not None:
            detail = f"{message} at position {position}"
        if expression:
            detail = f"{detail}: {expression!r}"
        super().__init__(detail)
