"""Retrieval and action core for seeq."""
