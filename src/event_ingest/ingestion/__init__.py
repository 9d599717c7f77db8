"""
Ingestion layer: source adapters, orchestration, reference caches and the
dedup/persistence engine.
"""
