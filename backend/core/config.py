import os

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "churnanalyticsSecret")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

CHURN_WINDOW_DAYS = int(os.getenv("CHURN_WINDOW_DAYS", "31"))
CHURN_REQUEST_MAX_DAYS = int(os.getenv("CHURN_REQUEST_MAX_DAYS", "30"))
CHURN_CACHE_TTL_SECONDS = int(os.getenv("CHURN_CACHE_TTL_SECONDS", str(24 * 60 * 60)))
CHURN_SERIES_VERSION = os.getenv("CHURN_SERIES_VERSION", "v1")
CHURN_CACHE_BACKEND = os.getenv("CHURN_CACHE_BACKEND", "mongo").lower()
