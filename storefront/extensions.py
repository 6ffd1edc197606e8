import logging
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
import redis as _redis
from rq import Queue

logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()

# Initialized lazily in create_app
redis_client: _redis.Redis = None  # type: ignore
task_queue: Queue = None  # type: ignore


class InlineQueue:
    """Runs jobs in-process for development and tests without Redis."""

    def enqueue(self, func, *args, **kwargs):
        logger.debug("Redis not available, running %s inline", func.__name__)
        try:
            func(*args, **kwargs)
        except Exception:
            logger.exception("Inline job %s failed", func.__name__)
        return None


def init_redis(app):
    global redis_client, task_queue
    redis_client = None
    redis_url = app.config.get("REDIS_URL", "")
    if not redis_url:
        logger.warning("REDIS_URL not set; product locks and queue disabled (dev mode)")
        task_queue = InlineQueue()
        return

    try:
        redis_client = _redis.from_url(redis_url, decode_responses=False)
        redis_client.ping()
        task_queue = Queue("storage-cleanup", connection=redis_client)
    except Exception as e:
        logger.warning("Redis connection failed (%s); queue runs inline", e)
        redis_client = None
        task_queue = InlineQueue()
