"""Tamper-evident audit trail for webhook handling."""
