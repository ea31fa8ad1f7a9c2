from __future__ import annotations


class ACOError(Exception):
    """Base class for errors raised by the ACO engine."""


class InvalidInputError(ACOError, ValueError):
    """Malformed or too-small point set or distance matrix."""


class InvalidParameterError(ACOError, ValueError):
    """Parameter value that cannot be silently clamped (e.g. n_ants < 1)."""


class NotReadyError(ACOError, RuntimeError):
    """Operation invoked before the engine was configured."""
