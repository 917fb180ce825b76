from .base import CatalogSource  # noqa: F401
from .client import CatalogClient  # noqa: F401
from .errors import (  # noqa: F401
    CatalogError,
    CatalogAuthError,
    CatalogRateLimitError,
    CatalogNotFoundError,
    CatalogUserError,
)
from .items import CatalogItem, CatalogPage, ImageRef  # noqa: F401
