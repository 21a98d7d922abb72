import os

# Settings are read once at import time by applyr.main; pin the test environment first.
os.environ.setdefault("APPLYR_STORAGE_BACKEND", "memory")
os.environ.setdefault("APPLYR_OTEL_ENABLED", "false")
os.environ.setdefault("APPLYR_AUTH_BASE_URL", "http://auth.test")
