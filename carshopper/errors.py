# carshopper/errors.py
"""Error taxonomy for the retrieval core.

Leaf failures (embedding provider, vector matcher) are recovered by the search
router's structured fallback. Catalog failures surface to callers as
`RetrievalFailed`, which carries only a generic message.
"""


class CarShopperError(Exception):
    """Base class for retrieval core errors."""


class EmbeddingUnavailable(CarShopperError):
    """The embedding provider call failed or returned an unusable vector."""


class MatcherUnavailable(CarShopperError):
    """The catalog cannot run a vector similarity query."""


class CatalogUnavailable(CarShopperError):
    """A structured catalog query failed."""


class RetrievalFailed(CarShopperError):
    """Search could not be completed on any path."""

    default_message = "Search failed. Please try again later."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class VehicleNotFound(CarShopperError, LookupError):
    """No catalog vehicle has the given id."""
