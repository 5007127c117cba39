"""
HTTP service: FastAPI front end for the ingestion pipeline.

Run with ``docingest serve`` or any ASGI server via the
``docingest.service.app:create_app`` factory.
"""
