import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tailor_intake.db")
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() in ("1", "true", "yes")

ORDER_STORE_URL = os.getenv("ORDER_STORE_URL", "http://localhost:8000")
ORDER_STORE_TIMEOUT = float(os.getenv("ORDER_STORE_TIMEOUT", "5"))
ORDER_STORE_MAX_RETRIES = int(os.getenv("ORDER_STORE_MAX_RETRIES", "3"))

# past orders pulled per customer for measurement autofill
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "20"))

INVOICE_PREFIX = os.getenv("INVOICE_PREFIX", "INV")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
