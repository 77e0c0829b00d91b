"""
Background Tasks Module

Scheduled jobs run by the ARQ worker.

Task Organization:
-----------------
- digest_tasks.py: hourly, daily and weekly notification digest emails

Task functions receive a special `ctx` parameter:
- ctx['redis']: Redis connection for the worker
- ctx['digest_scheduler']: built once in app.worker.startup

Running Workers:
---------------
    # Start a worker (from project root)
    arq app.worker.WorkerSettings
"""

from app.tasks.digest_tasks import daily_digest, hourly_digest, weekly_digest

__all__ = [
    "hourly_digest",
    "daily_digest",
    "weekly_digest",
]
