"""
Serving — FastAPI application for the RAG pipeline.

This module exposes ingest / ask / search over HTTP so the pipeline can
run as a standalone container.
"""
