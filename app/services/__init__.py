"""
Services module for transfer sync and player enrichment.

This module organizes services into:
- core: API-Football client and retry policy
- sync: rate limiter, strategy selection, adapters, orchestrator, manual sync slots
- enrichment: player details client, cache and batch pipeline
"""
