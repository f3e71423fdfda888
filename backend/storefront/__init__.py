"""
Storefront Backend
====================

Multi-tenant storefront API: merchants manage a catalog (products, variants,
option groups, media, categories/tags/brands), publish it through stores with
per-store prices, take payments through Stripe Connect and import
print-on-demand products from Printify.

Layers:
    routes/    HTTP concerns only; resolve the caller and call a service
    services/  business rules; every owned-resource write goes through an
               ownership check first
    models/    SQLAlchemy ORM rows
    schemas/   Pydantic request/response contracts
"""

__version__ = "1.0.0"
