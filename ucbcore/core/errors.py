"""
Exception types raised by the model and likelihood machinery.

Structural errors (``SchemaMismatch``, ``NonPositivePSD``) are configuration
bugs and propagate to the caller. Per-proposal degeneracies
(``DomainViolation``, ``NonFiniteLikelihood``) are caught by the chain engine
and turned into rejections.
"""


class UCBModelError(Exception):
    """Base class for all ucbcore errors."""


class SchemaMismatch(UCBModelError, ValueError):
    """Parameter array does not match the parameter schema."""

    def __init__(self, expected: int, got: int):
        self.expected = expected
        self.got = got
        super().__init__(f"Parameter array must have length {expected}, got {got}.")


class DomainViolation(UCBModelError, ValueError):
    """Source occupies frequency bins outside the analysed band."""

    def __init__(self, qmin: int, qmax: int, band_qmin: int, band_qmax: int):
        self.qmin = qmin
        self.qmax = qmax
        self.band = (band_qmin, band_qmax)
        super().__init__(
            f"Source bins [{qmin}, {qmax}) fall outside data band [{band_qmin}, {band_qmax})."
        )


class NonPositivePSD(UCBModelError, ValueError):
    """Noise model produced a non-positive or non-finite PSD value."""


class NonFiniteLikelihood(UCBModelError, ArithmeticError):
    """Likelihood evaluated to NaN or +/- infinity."""
