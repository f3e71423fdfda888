# Models package init
"""
Importing this package registers every table on Base.metadata, which is what
Alembic autogenerate and the test schema setup rely on.
"""

from storefront.models.catalog import (  # noqa: F401
    Brand,
    Category,
    Product,
    ProductCategory,
    ProductMedia,
    ProductOption,
    ProductOptionValue,
    ProductTag,
    Tag,
    Variant,
)
from storefront.models.commerce import (  # noqa: F401
    Order,
    PayoutAccount,
    PendingOrder,
    PrintifyConnection,
)
from storefront.models.store import Store, StorePrice, StoreProduct  # noqa: F401
from storefront.models.user import Profile, User  # noqa: F401
