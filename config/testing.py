import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "hostel_fees_test"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

# Tests drive passes through FeeScheduler.run_pending instead.
SCHEDULER_ENABLED = False
SCHEDULER_POLL_SECONDS = 1.0
REMINDER_CYCLE_INTERVAL_MINUTES = 60
RECONCILE_INTERVAL_MINUTES = 60
LATE_FEE_INTERVAL_HOURS = 24

DEFAULT_ACADEMIC_YEAR = None
