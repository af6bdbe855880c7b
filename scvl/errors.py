"""Domain exceptions raised by the store, the redirect engine and the page service.

Every exception carries the HTTP status the routes translate it into. Cache
failures have no exception here: ``SlugCache`` logs them and reports a miss.
"""

__all__ = [
    "ForbiddenError",
    "InvalidURLError",
    "OGPNotFoundError",
    "PageNotFoundError",
    "ScvlError",
    "SlugConflictError",
    "StoreError",
]


class ScvlError(Exception):
    status_code: int = 500


class PageNotFoundError(ScvlError):
    status_code = 404

    def __init__(self, message: str = "The page you are looking for is not found.") -> None:
        super().__init__(message)


class OGPNotFoundError(ScvlError):
    status_code = 404

    def __init__(self, ogp_id: int) -> None:
        super().__init__(f"OGP {ogp_id} not found")
        self.ogp_id = ogp_id


class ForbiddenError(ScvlError):
    status_code = 403

    def __init__(self, message: str = "You don't have permission to edit it.") -> None:
        super().__init__(message)


class InvalidURLError(ScvlError, ValueError):
    status_code = 422


class StoreError(ScvlError):
    """A read or write against the durable store failed and was rolled back."""

    status_code = 500


class SlugConflictError(StoreError):
    """The generated slug collided with an existing page."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"Slug '{slug}' collision detected")
        self.slug = slug
