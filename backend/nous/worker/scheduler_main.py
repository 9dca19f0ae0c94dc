"""Dedicated APScheduler worker process."""
from __future__ import annotations

import logging
import signal
import sys
import threading
from datetime import datetime, timezone
from time import perf_counter

from apscheduler.schedulers.background import BackgroundScheduler

from nous.core.config import settings
from nous.core.logging import configure_logging
from nous.db.session import SessionLocal
from nous.observability.client import init_opik
from nous.observability.metrics import log_metric
from nous.observability.tracing import trace
from nous.services.emotional_state_service import run_decay_for_all_users

logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging(log_level=settings.log_level)
    init_opik()
    try:
        _validate_config()
    except ValueError as exc:
        logger.error("Invalid scheduler configuration: %s", exc)
        sys.exit(1)

    logger.info("Scheduler worker starting (enabled=%s)", settings.scheduler_enabled)

    if not settings.scheduler_enabled:
        logger.warning("Scheduler worker started but SCHEDULER_ENABLED=false. No jobs will run.")
        return

    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)
    _register_jobs(scheduler)
    logger.info(
        "Scheduler enabled (tz=%s, emotion_decay every %s min, rate=%s)",
        settings.scheduler_timezone,
        settings.emotion_decay_interval_minutes,
        settings.emotion_decay_rate,
    )
    scheduler.start()
    if settings.jobs_run_on_startup:
        logger.info("Running jobs once on startup")
        _run_emotion_decay_job()

    stop_event = threading.Event()

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker shutting down (signal=%s)", signum)
        if scheduler.running:
            scheduler.shutdown(wait=False)
        stop_event.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        _wait_forever(stop_event)
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


def _register_jobs(scheduler: BackgroundScheduler) -> None:
    scheduler.add_job(
        _run_emotion_decay_job,
        trigger="interval",
        minutes=settings.emotion_decay_interval_minutes,
        id="emotion_decay_job",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    logger.info(
        "Registered scheduler jobs (tz=%s): emotion_decay every %s min",
        settings.scheduler_timezone,
        settings.emotion_decay_interval_minutes,
    )


def _run_emotion_decay_job() -> None:
    _execute_job(
        job_name="emotion_decay",
        runner=run_decay_for_all_users,
        scheduled_run_time=datetime.now(timezone.utc),
    )


def _execute_job(job_name: str, runner, scheduled_run_time=None) -> None:
    session = SessionLocal()
    start = perf_counter()
    scheduled_str = scheduled_run_time.isoformat() if scheduled_run_time else None
    metadata = {"job": job_name, "scheduled_run_time": scheduled_str}
    logger.info("Job %s starting (scheduled_run_time=%s)", job_name, scheduled_str or "now")

    users_processed = 0
    snapshots_written = 0
    failed = 0
    success = 0
    try:
        with trace(f"jobs.{job_name}", metadata=metadata):
            result = runner(session)
            users_processed = result.users_processed
            snapshots_written = result.snapshots_written
            failed = getattr(result, "failed", 0)
            success = 1
    except Exception:  # pragma: no cover - a failed run must not kill the worker
        logger.exception("Job %s failed", job_name)
    finally:
        session.close()

    duration_ms = (perf_counter() - start) * 1000
    log_metric("jobs.success", success, metadata={"job": job_name})
    log_metric("jobs.users_processed", users_processed, metadata={"job": job_name})
    log_metric("jobs.snapshots_written", snapshots_written, metadata={"job": job_name})
    log_metric("jobs.failed", failed, metadata={"job": job_name})
    log_metric("jobs.duration_ms", duration_ms, metadata={"job": job_name})

    if success:
        logger.info(
            "Job %s complete: users=%s, snapshots=%s, failed=%s, duration_ms=%0.2f",
            job_name,
            users_processed,
            snapshots_written,
            failed,
            duration_ms,
        )


def _validate_config() -> None:
    if settings.emotion_decay_interval_minutes < 1:
        raise ValueError("EMOTION_DECAY_INTERVAL_MINUTES must be >= 1")
    if not (0.0 < settings.emotion_decay_rate <= 1.0):
        raise ValueError("EMOTION_DECAY_RATE must be in (0, 1]")


def _wait_forever(stop_event: threading.Event) -> None:
    stop_event.wait()


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
