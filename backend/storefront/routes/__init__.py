"""
HTTP route modules.

    auth.py          /api/auth/*, /api/onboarding
    products.py      /api/products (+ variants, options, media)
    taxonomy.py      /api/categories, /api/tags, /api/brands
    stores.py        /api/stores
    pricing.py       store price tables and product ↔ store channel
    orders.py        /api/orders
    payments.py      /api/checkout, /api/stripe/*, /api/webhooks/stripe
    integrations.py  Printify and ImageKit
    health.py        /health
"""
