"""
OpenStreetMap notes ingestion pipeline

Components:
- partition: record-aligned splitting of large notes documents
- resources: memory/load sensing and worker sizing
- pool: resource-aware parallel processing of work units
- overpass: Overpass API client with endpoint failover
- pipeline: end-to-end processing of one document
- report / scheduler / cli: run reports, daemon mode and the command line

Usage:
    from ingestion.pipeline import NotesPipeline

    summary = NotesPipeline().process_document("planet-notes-latest.osn", "/tmp/parts")
"""

__version__ = "1.0.0"
__all__ = ["config", "errors", "overpass", "partition", "pipeline", "pool", "resources"]
