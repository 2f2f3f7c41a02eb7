"""
Error types raised by the PVSim engines.
"""

from typing import Optional


def _rebuild_error(cls, message, state):
    error = cls.__new__(cls)
    Exception.__init__(error, message)
    error.__dict__.update(state)
    return error


class PVSimError(Exception):
    """Base class for all PVSim errors"""

    def __reduce__(self):
        # Keep attributes when errors cross process boundaries
        return (_rebuild_error, (self.__class__, str(self), self.__dict__))


class InvalidParameterError(PVSimError, ValueError):
    """Malformed model or load parameters. Raised at construction time."""


class OutOfRangeError(PVSimError, ValueError):
    """Light current queried outside the sampled time span."""

    def __init__(self, time: float, span: tuple):
        self.time = time
        self.span = span
        super().__init__(f"t = {time:g} s is outside the sampled span "
                         f"[{span[0]:g}, {span[1]:g}] s")


class ConvergenceError(PVSimError, RuntimeError):
    """Newton iteration did not meet tolerance within the iteration cap."""

    def __init__(self, message: str,
                 voltage: Optional[float] = None,
                 residual: Optional[float] = None,
                 iterations: int = 0,
                 time: Optional[float] = None):
        self.voltage = voltage
        self.residual = residual
        self.iterations = iterations
        self.time = time
        super().__init__(message)


class SweepTimeoutError(PVSimError, RuntimeError):
    """A sweep exceeded its wall-clock budget."""

    def __init__(self, timeout: float, completed: int):
        self.timeout = timeout
        self.completed = completed
        super().__init__(f"Sweep exceeded {timeout:g} s after {completed} samples")
