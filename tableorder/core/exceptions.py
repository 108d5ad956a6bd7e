# tableorder/core/exceptions.py
import enum


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    STORE = "store"


class OrderingError(Exception):
    """
    Base error returned by the ordering core.
    Callers distinguish failures through `kind`, never by parsing the message.
    """
    kind: ErrorKind = ErrorKind.STORE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(OrderingError):
    kind = ErrorKind.NOT_FOUND


class ValidationError(OrderingError):
    kind = ErrorKind.VALIDATION


class ConflictError(OrderingError):
    kind = ErrorKind.CONFLICT


class StoreError(OrderingError):
    kind = ErrorKind.STORE
