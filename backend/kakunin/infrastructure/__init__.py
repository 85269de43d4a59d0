"""Infrastructure adapters (object storage, vision API)."""
