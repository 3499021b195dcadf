"""
ToolHire Backend: Middleware Package
======================================

Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

Rate limiting runs first so abusive clients are rejected before any work;
the request ID is set before the logging middleware reads it.
"""
