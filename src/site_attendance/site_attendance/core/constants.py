"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

# Project site (Moro, Pakistan)
PROJECT_SITE_LATITUDE = 26.6814
PROJECT_SITE_LONGITUDE = 68.0169

EARTH_RADIUS_METERS = 6_371_000.0

DEFAULT_RADIUS_METERS = 200
DEFAULT_WORKING_HOURS_START = "06:00"
DEFAULT_WORKING_HOURS_END = "22:00"

LOCATION_TIMEOUT_MS = 10_000
LOCATION_MAX_AGE_MS = 0

OFFLINE_QUEUE_KEY = "attendance-offline-queue"
DEFAULT_SYNC_RETRIES = 3

DEFAULT_HISTORY_LIMIT = 30
DEMO_PASSWORD = "password"
