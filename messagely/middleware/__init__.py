# Middleware package init
"""
Messagely Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route

    Rate Limit:  throttles /auth/login and /auth/register per IP
    Request ID:  correlation ID for logs and error bodies
    Logging:     access line with status and duration
    CORS:        FastAPI's CORSMiddleware

Identity (auth.py) is not an ASGI middleware. It is an app-wide FastAPI
dependency, because the token may travel in the JSON body, and FastAPI
has already read and cached the body by the time dependencies run.
"""
