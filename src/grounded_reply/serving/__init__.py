"""
Serving — FastAPI application for ingestion and suggestion enhancement.

Run with ``uvicorn grounded_reply.serving.app:app``.
"""
