# config.py
import os

# --- Database settings ---
# DATABASE_URL wins when set; otherwise the pieces below are combined
DB_NAME = os.getenv("DB_NAME", "marketplace")
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", "5432"))

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"dbname={DB_NAME} user={DB_USER} password={DB_PASSWORD} host={DB_HOST} port={DB_PORT}",
)

# Create tables when the server starts (set to "0" when the schema is managed elsewhere)
INIT_DB_ON_STARTUP = os.getenv("INIT_DB_ON_STARTUP", "1") == "1"

# --- Auth settings ---
# ID tokens are HS256 JWTs whose "sub" claim is the user id
SECRET_KEY = os.getenv("SECRET_KEY", "a_very_secret_key_please_change_me")
TOKEN_ALGORITHM = os.getenv("TOKEN_ALGORITHM", "HS256")
TOKEN_TTL_MINUTES = int(os.getenv("TOKEN_TTL_MINUTES", "60"))

# --- Storage settings ---
UPLOAD_ROOT = os.getenv("UPLOAD_ROOT", "uploads")

# --- Money settings ---
CURRENCY = os.getenv("CURRENCY", "LAK")

# Posting fee per category id, used when the category row has no fee of its own
DEFAULT_POSTING_FEES = {
    "design": 5000,
    "development": 10000,
    "writing": 3000,
    "translation": 3000,
    "marketing": 5000,
    "video": 8000,
    "education": 2000,
}

# --- Payment gateway settings ---
# Shared secret the gateway sends in X-Webhook-Secret; the webhook is closed while it is empty
PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET", "")
