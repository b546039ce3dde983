"""
Prometheus metrics for the transfer sync API.

Metrics exposed:
- Sync run counters, record outcome counters and duration histogram
- Daily API quota gauges and emergency mode flag
- Player cache hit/miss counters
- Enrichment outcome counters
- Manual sync denials
- Scheduler status gauge
"""
from prometheus_client import Counter, Gauge, Histogram

# Sync Metrics
sync_runs_total = Counter(
    "transfer_sync_runs_total",
    "Total transfer sync runs",
    ["strategy", "trigger", "outcome"]
)

sync_records_total = Counter(
    "transfer_sync_records_total",
    "Transfer records processed by sync runs",
    ["result"]
)

sync_duration_seconds = Histogram(
    "transfer_sync_duration_seconds",
    "Transfer sync run duration in seconds",
    ["strategy"],
    buckets=(1, 5, 15, 30, 60, 120, 300, 600)
)

source_requests_total = Counter(
    "api_football_requests_total",
    "Requests sent to API-Football",
    ["endpoint", "outcome"]
)

# API Quota Metrics
api_quota_used = Gauge(
    "api_football_quota_used",
    "API-Football calls used in the current 24h window"
)

api_quota_remaining = Gauge(
    "api_football_quota_remaining",
    "API-Football calls remaining in the current 24h window"
)

api_emergency_mode = Gauge(
    "api_football_emergency_mode",
    "Whether the quota is in emergency mode (1=yes, 0=no)"
)

# Cache Metrics
player_cache_lookups_total = Counter(
    "player_cache_lookups_total",
    "Player cache lookups",
    ["result"]
)

# Enrichment Metrics
enrichment_records_total = Counter(
    "player_enrichment_records_total",
    "Player enrichment outcomes",
    ["result"]
)

# Manual sync
manual_sync_denied_total = Counter(
    "manual_sync_denied_total",
    "Manual sync requests denied",
    ["reason"]
)

# Scheduler Metrics
scheduler_running = Gauge(
    "scheduler_running",
    "Whether the automation scheduler is running (1=running, 0=stopped)"
)

scheduler_jobs_total = Gauge(
    "scheduler_jobs_total",
    "Total number of scheduled jobs"
)


def update_quota_metrics(used: int, remaining: int, emergency_mode: bool) -> None:
    """Mirror a rate limiter snapshot into the quota gauges."""
    api_quota_used.set(used)
    api_quota_remaining.set(remaining)
    api_emergency_mode.set(1 if emergency_mode else 0)


def record_sync_run(strategy: str, trigger: str, successful: int, failed: int, duration_ms: int) -> None:
    """Record the outcome of a finished sync run."""
    outcome = "success" if failed == 0 else ("partial" if successful > 0 else "failed")
    sync_runs_total.labels(strategy=strategy, trigger=trigger, outcome=outcome).inc()
    sync_records_total.labels(result="successful").inc(successful)
    sync_records_total.labels(result="failed").inc(failed)
    sync_duration_seconds.labels(strategy=strategy).observe(duration_ms / 1000)


def update_scheduler_metrics(running: bool, job_count: int) -> None:
    scheduler_running.set(1 if running else 0)
    scheduler_jobs_total.set(job_count)
