__all__ = [
    "FaceStyleError",
    "OutOfBoundsError",
    "SizeMismatchError",
    "DegenerateInputError",
]


class FaceStyleError(Exception):
    """Base class for contract violations raised by facestyle components."""


class OutOfBoundsError(FaceStyleError, IndexError):
    """A pixel or rectangle falls outside the buffer it addresses."""


class SizeMismatchError(FaceStyleError, ValueError):
    """Two inputs that must correspond have incompatible sizes or lengths."""


class DegenerateInputError(FaceStyleError, ValueError):
    """Input geometry is too small to define the requested result."""
