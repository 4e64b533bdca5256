"""arq worker settings.

Import path for arq CLI: arq trippey.workers.settings.WorkerSettings
"""

from __future__ import annotations

from arq import cron
from arq.connections import RedisSettings

from trippey.config import get_settings
from trippey.workers.jobs import (
    expire_quest_attempts,
    reconcile_awards,
    reset_streaks,
    worker_shutdown,
    worker_startup,
)


class WorkerSettings:
    functions = [reconcile_awards, expire_quest_attempts, reset_streaks]
    cron_jobs = [
        cron(reconcile_awards, minute=set(range(0, 60, 5)), run_at_startup=True),
        cron(expire_quest_attempts, minute={7, 37}),
        cron(reset_streaks, hour={3}, minute={15}),
    ]
    on_startup = worker_startup
    on_shutdown = worker_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 4
    job_timeout = 300
