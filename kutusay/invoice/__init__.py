"""Invoice extraction and reconciliation engine."""
