"""Document lifecycle: upload, review decisions, history and status polling."""
