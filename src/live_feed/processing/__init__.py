"""Ingest → enrich → score → schedule processing stages and the pipeline orchestrator."""

__all__ = [
    "ai_service",
    "buffer",
    "dedupe",
    "enrichment",
    "ingestor",
    "llm_client",
    "pipeline",
    "scheduler",
    "scoring",
    "types",
]
