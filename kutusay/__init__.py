"""Pharmacy invoice line-item extraction and box-count reconciliation."""
