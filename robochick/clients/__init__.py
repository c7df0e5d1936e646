"""Outbound HTTP clients for chat posting and message bank retrieval."""
