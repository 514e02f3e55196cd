# Middleware package init
"""
ChampStep Backend — Middleware Package
========================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit: rejects abusive write traffic before any processing
    2. Request ID: correlation ID for every log line of the request
    3. Logging: method, path, status, duration, acting user
"""
