"""
FastAPI application, middleware, models and SSE transport.
"""
