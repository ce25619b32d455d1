"""Exceptions raised by the Black Marble pipeline"""


class BlackMarbleError(Exception):
    """Base class for every pipeline error"""


class UnsupportedProductError(BlackMarbleError, ValueError):
    """Product id is not one of the four Black Marble products"""


class InvalidDateError(BlackMarbleError, ValueError):
    """Date cannot be interpreted at the product's granularity"""


class TileListingError(BlackMarbleError):
    """Remote archive listing for a date is unavailable"""


class IncompleteTileCoverageError(BlackMarbleError):
    """Fewer tiles are available than the region needs"""


class TileDecodeError(BlackMarbleError):
    """A downloaded tile could not be read"""


class InsufficientDataError(BlackMarbleError):
    """Interpolation requested with fewer than two dates"""


class EmptyIntersectionError(BlackMarbleError):
    """A polygon covers no valid pixels of a band"""


class WriteVerificationError(BlackMarbleError, OSError):
    """An output file is missing right after it was written"""


class NoDataError(BlackMarbleError):
    """Every requested date failed and the caller asked for an error"""
