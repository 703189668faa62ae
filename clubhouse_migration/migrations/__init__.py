"""Migration pipelines."""
