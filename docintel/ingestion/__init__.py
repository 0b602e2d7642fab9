"""Ingestion pipeline.

orchestrator.py turns an uploaded document into stored artifacts and index
points; ingest_files.py drives the same pipeline from the command line.
"""
