"""Daily CSV export of confirmed documents with a run ledger."""
