import asyncio
from datetime import timedelta

from app import config
from helpers.session_store import FileSessionStore

SESSION_STORE = FileSessionStore(
    config.UBER_AUTH_STATE_PATH,
    max_age=timedelta(days=config.SESSION_MAX_AGE_DAYS),
)
# Only one headed login window at a time.
LOGIN_SEMAPHORE = asyncio.Semaphore(1)
