# Exception taxonomy for a price lookup request.
#
# Only InvalidInput, ContextAcquisitionFailure, NavigationFailure and
# RecognitionFailure ever leave the service. NavigationTimeout and
# ElementNotFound describe degraded steps: they are recorded and logged
# while the request carries on.


class PriceLookupError(Exception):
    """Base class for every error raised by the price lookup core."""

    #: Short, user-facing label used as the "error" field of API responses.
    label = "Failed to process request"


class InvalidInput(PriceLookupError):
    """The query term is missing or blank. Raised before any browser starts."""

    label = "Search term is required"


class ContextAcquisitionFailure(PriceLookupError):
    """The rendering backend could not be launched or reserved."""


class NavigationFailure(PriceLookupError):
    """Navigation failed at the protocol level (DNS, TLS, closed target)."""


class NavigationTimeout(PriceLookupError):
    """The page did not settle in time. Tolerated: extraction uses partial markup."""


class ElementNotFound(PriceLookupError):
    """An expected banner or selector was absent. Tolerated."""


class RecognitionFailure(PriceLookupError):
    """The OCR step failed to run (as opposed to running and finding nothing)."""
