"""
Event Ingest.

Batch ingestion of event listings (concerts, shows) from heterogeneous
sources into a relational store.

Key Components:
- Source adapters: fetch raw listings and normalize them to CanonicalRecord
- SourceOrchestrator: runs all adapters concurrently and merges the results
- IngestionEngine: deduplicates and persists records with cached references
"""

__version__ = "0.1.0"
