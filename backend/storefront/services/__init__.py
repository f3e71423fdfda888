"""
Business logic layer.

Every service is stateless and exposed as a module-level singleton
(`product_service`, `pricing_service`, ...). Methods take the request's
AsyncSession and, for owned resources, the caller's SessionUser explicitly;
ownership.py holds the shared "is this row the caller's?" checks.
"""
