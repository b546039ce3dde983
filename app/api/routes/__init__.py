"""
API routes.

- sync: transfer sync triggers, deadline-day cron and sync health
- enrichment: player enrichment runs, retries and stats
"""
