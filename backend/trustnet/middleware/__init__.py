# Middleware package init
"""
TrustNet Backend — Middleware Package
=======================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    Rate limit runs before anything else so rejected clients cost nothing;
    request ID is set before logging so the access line carries it.
"""
