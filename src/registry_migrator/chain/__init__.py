"""Ethereum access: log retrieval, registry events and repo contract reads."""
