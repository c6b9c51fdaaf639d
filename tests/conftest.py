import os

# Must run before nomadconnect.core.config is imported
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("AUTH_VERIFY_MODE", "header")
os.environ.setdefault("DATABASE_URL", "sqlite://")
