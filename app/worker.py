"""
ARQ Worker Configuration

This module configures the ARQ worker that runs the notification
digest cron jobs.

Running the Worker:
------------------
    # From project root directory
    arq app.worker.WorkerSettings

    # With verbose logging
    arq app.worker.WorkerSettings --verbose

Worker Lifecycle:
----------------
1. Worker starts and connects to Redis
2. Worker calls startup() which builds the digest scheduler
3. Cron jobs fire on schedule (evaluated in DIGEST_TIMEZONE)
4. On shutdown, worker calls shutdown() function

Scaling Workers:
---------------
Cron jobs are registered as unique: when several workers run, each
trigger is executed by only one of them.
"""

import logging
from typing import Any, Dict
from zoneinfo import ZoneInfo

from arq import cron

from app.core.config import settings
from app.db.database import AsyncSessionLocal, engine
from app.db.redis import get_arq_redis_settings
from app.services.email_service import EmailService
from app.tasks.digest_tasks import DigestScheduler, daily_digest, hourly_digest, weekly_digest

# ============================================================
# Logging Configuration
# ============================================================

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# ============================================================
# Startup and Shutdown Hooks
# ============================================================

async def startup(ctx: Dict[str, Any]) -> None:
    """
    Called when worker starts.

    Collaborators are built once and shared by every job run.
    """
    logger.info("ARQ Worker starting up...")

    email = EmailService(AsyncSessionLocal)
    ctx["email_service"] = email
    ctx["digest_scheduler"] = DigestScheduler(AsyncSessionLocal, email)

    logger.info(f"ARQ Worker ready, digest schedule in {settings.DIGEST_TIMEZONE}")


async def shutdown(ctx: Dict[str, Any]) -> None:
    """Called when worker shuts down."""
    logger.info("ARQ Worker shutting down...")
    await engine.dispose()
    logger.info("ARQ Worker shutdown complete")


# ============================================================
# Worker Configuration Class
# ============================================================

class WorkerSettings:
    """
    ARQ Worker settings.

    This class is discovered by ARQ when you run:
        arq app.worker.WorkerSettings
    """

    # ========================================
    # Scheduled Jobs
    # ========================================
    cron_jobs = [
        cron(hourly_digest, minute=0, unique=True),
        cron(daily_digest, hour=8, minute=0, unique=True),
        cron(weekly_digest, weekday="mon", hour=9, minute=0, unique=True),
    ]
    timezone = ZoneInfo(settings.DIGEST_TIMEZONE)

    # ========================================
    # Redis Connection
    # ========================================
    redis_settings = get_arq_redis_settings()

    # ========================================
    # Lifecycle Hooks
    # ========================================
    on_startup = startup
    on_shutdown = shutdown

    # ========================================
    # Job Settings
    # ========================================
    job_timeout = 1800     # a weekly run walks every weekly subscriber
    keep_result = 3600     # 1 hour
    max_tries = 1          # a missed digest is not re-sent

    # ========================================
    # Queue Settings
    # ========================================
    queue_name = "arq:notification-center"
    health_check_interval = 10
