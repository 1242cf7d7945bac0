"""
mapreviews - Google Maps review collection and AI enrichment pipeline.

This package contains the core modules for the mapreviews system:
- collectors: Apify job client, manual URL parsing, result normalization
- orchestration: job polling, progress events, pipeline controller
- analysis: aggregate review statistics and keyword extraction
- services: Claude review analysis and batched enrichment
- delivery: JSON/CSV export and run history
- api: FastAPI application driving pipeline runs
- config: Pydantic settings and configuration
- models: Data models shared by every stage
"""

__version__ = "0.1.0"
