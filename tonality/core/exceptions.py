"""
Custom exceptions for the tonality pattern-matching engine.
"""


class TonalityError(Exception):
    """Base exception for all tonality errors."""

    def __init__(self, message: str, code: str = "TONALITY_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class InvalidIntervalError(TonalityError):
    """Interval spelling is malformed or inconsistent."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_INTERVAL")


class IndexOutOfRangeError(TonalityError, IndexError):
    """Degree or register lookup past the available bounds."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INDEX_OUT_OF_RANGE")


class RegisterCollisionError(TonalityError):
    """Systematic scale register reservation violated."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="REGISTER_COLLISION")


class DuplicateStretchError(TonalityError):
    """A tone-event already has an outgoing stretch."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DUPLICATE_STRETCH")


class InvalidRelationError(TonalityError):
    """Relation between two tone-events breaks a range rule."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_RELATION")


class PartitionError(TonalityError):
    """Tone-event does not fit the time-ordered sub-range partition."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="PARTITION_ERROR")


class ImmutableError(TonalityError):
    """Attempt to mutate a shared or frozen instance."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="IMMUTABLE")


class UnknownScaleError(TonalityError, KeyError):
    """Scale preset lookup failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="UNKNOWN_SCALE")

    def __str__(self) -> str:
        return self.message


class UnsupportedOperationError(TonalityError):
    """Operation requires a capability the instance does not have."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="UNSUPPORTED_OPERATION")
