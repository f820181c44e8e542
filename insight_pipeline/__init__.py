"""insight_pipeline: concurrent, schema-validated LLM extraction over free-text records."""

__version__ = "0.1.0"
