import os

db_url = os.environ.get("DB_URL", "sqlite://:memory:")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
VIEW_CACHE_TTL = int(os.environ.get("VIEW_CACHE_TTL", "60"))

# Event start times are rendered in the community's local time in notifications.
DISPLAY_TIMEZONE = os.environ.get("DISPLAY_TIMEZONE", "Asia/Tokyo")

VIEW_AS_USER_COOKIE = "view_as_user"
IMPERSONATE_ID_COOKIE = "impersonate_id"
PREVIEW_COOKIE_MAX_AGE = 60 * 60 * 24  # 1 day
