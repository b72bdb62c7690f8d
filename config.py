import os
from dataclasses import dataclass, field
from typing import Callable

from utils import timestamp

SECRET_KEY = os.environ.get("FORUM_SECRET_KEY", "your-secret-key-change-this")
DB_PATH = os.environ.get("FORUM_DB_PATH", "forum.db")
ALLOWED_ORIGINS = ["http://localhost:3000", "http://localhost:8080"]
ALLOWED_HOSTS = os.environ.get("FORUM_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")
JWT_ALGORITHM = "HS256"

# Server Configuration
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8000

# Posting
ALLOW_ANONYMOUS = os.environ.get("FORUM_ALLOW_ANONYMOUS", "").lower() in ("1", "true", "yes")

# Validation Constants
CATEGORY_NAME_MAX_LENGTH = 255
FORUM_NAME_MAX_LENGTH = 255
THREAD_TITLE_MAX_LENGTH = 255
POST_CONTENT_MAX_LENGTH = 50000
SEARCH_QUERY_MIN_LENGTH = 2

# Pagination Defaults
MAX_THREADS_PER_PAGE = 20
MAX_REPLIES_PER_PAGE = 10
RECENT_POSTS_LIMIT = 10
SEARCH_RESULTS_LIMIT = 20

# Audit
AUDIT_SUMMARY_LENGTH = 50

# Storage
DB_BUSY_TIMEOUT = 5.0  # seconds SQLite waits on a locked database

# Security Settings
MAX_REQUEST_SIZE_MB = 1
GZIP_MIN_SIZE = 1000

# HTTP Status Codes
HTTP_REQUEST_ENTITY_TOO_LARGE = 413
HTTP_INTERNAL_SERVER_ERROR = 500

# Roles understood by the permission checks
ROLE_MODERATOR = "moderator"
ROLE_ADMIN = "admin"


@dataclass(slots=True)
class ForumConfig:
    """Settings handed to the store, the updater and the service at construction."""
    db_path: str = DB_PATH
    allow_anonymous: bool = ALLOW_ANONYMOUS
    max_threads_per_page: int = MAX_THREADS_PER_PAGE
    max_replies_per_page: int = MAX_REPLIES_PER_PAGE
    recent_posts_limit: int = RECENT_POSTS_LIMIT
    search_results_limit: int = SEARCH_RESULTS_LIMIT
    search_query_min_length: int = SEARCH_QUERY_MIN_LENGTH
    audit_summary_length: int = AUDIT_SUMMARY_LENGTH
    busy_timeout: float = DB_BUSY_TIMEOUT
    clock: Callable[[], float] = field(default=timestamp)
