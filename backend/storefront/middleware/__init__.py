"""
Cross-cutting request middleware.

Execution order for an incoming request:
    RequestID → RequestLogging → GZip → CORS → route handler

RequestID runs first so the access log line and any error body carry the id.
"""
