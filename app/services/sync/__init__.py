"""
Transfer Sync Service

Keeps the transfers table in line with API-Football under a hard daily quota.

Key components:
- RateLimiter: daily quota and emergency mode
- Strategy: normal / deadline_day / emergency selection and cadence
- Adapters: fetch and normalize raw transfer rows
- Orchestrator: run one sync inside a best-effort transaction
- ManualSyncLimiter: one manual sync per token per hour
"""
