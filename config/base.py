"""Settings shared by every environment. Values come from the environment (.env)."""
import os


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
DEBUG = _flag("DEBUG", "0")
TESTING = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# "memory" keeps records in-process; "mysql" uses DB_CONFIG
RECORD_STORE = os.getenv("RECORD_STORE", "memory")
DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "site_attendance"),
}
AUTO_INIT_DB = _flag("AUTO_INIT_DB", "0")

# Empty path keeps the offline queue in memory
OFFLINE_QUEUE_PATH = os.getenv("OFFLINE_QUEUE_PATH", "instance/offline_queue.json")
SYNC_RETRIES = int(os.getenv("SYNC_RETRIES", "3"))
SYNC_RETRY_DELAY = float(os.getenv("SYNC_RETRY_DELAY", "0.5"))
START_ONLINE = _flag("START_ONLINE", "1")

SITE_LATITUDE = float(os.getenv("SITE_LATITUDE", "26.6814"))
SITE_LONGITUDE = float(os.getenv("SITE_LONGITUDE", "68.0169"))
GEOFENCE_RADIUS_METERS = float(os.getenv("GEOFENCE_RADIUS_METERS", "200"))
WORKING_HOURS_START = os.getenv("WORKING_HOURS_START", "06:00")
WORKING_HOURS_END = os.getenv("WORKING_HOURS_END", "22:00")
ALLOW_EMPLOYEE_LOCATION_VIEW = _flag("ALLOW_EMPLOYEE_LOCATION_VIEW", "1")

LOCATION_TIMEOUT_MS = int(os.getenv("LOCATION_TIMEOUT_MS", "10000"))
CAMERA_FRONT_INDEX = int(os.getenv("CAMERA_FRONT_INDEX", "0"))
CAMERA_BACK_INDEX = int(os.getenv("CAMERA_BACK_INDEX", "1"))
