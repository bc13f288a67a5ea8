"""Domain layer: records, pure algorithms and the staged reconciliation engine."""
