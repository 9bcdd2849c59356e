from .base import *  # noqa: F401,F403

SECRET_KEY = "test-secret"
DEBUG = False
TESTING = True

RECORD_STORE = "memory"
AUTO_INIT_DB = False
OFFLINE_QUEUE_PATH = ""
SYNC_RETRY_DELAY = 0.0
START_ONLINE = True
LOCATION_TIMEOUT_MS = 2000
