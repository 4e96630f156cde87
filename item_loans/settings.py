import os
from pathlib import Path
from dotenv import load_dotenv

# --- Base Directory ---
BASE_DIR = Path(__file__).resolve().parent.parent

# --- Load Environment Variables ---
load_dotenv(BASE_DIR / ".env")

# --- Path Configuration ---
INPUT_DIR = BASE_DIR / os.getenv("INPUT_DIR", "input")
OUTPUT_DIR = BASE_DIR / os.getenv("OUTPUT_DIR", "output")

# --- Filename Configuration ---
TEMPLATE_FILENAME = os.getenv("TEMPLATE_FILENAME", "sample.csv")
VALIDATION_FILENAME_BASE = os.getenv("VALIDATION_FILENAME", "import_validation")
STATISTICS_FILENAME_BASE = os.getenv("STATISTICS_FILENAME", "loan_statistics")
SAVE_JSON_OUTPUT = os.getenv("SAVE_JSON_OUTPUT", "false").lower() in ("1", "true", "yes")

# --- Logging ---
LOG_DIR = BASE_DIR / os.getenv("LOG_DIR", "logs")
LOG_FILENAME = os.getenv("LOG_FILENAME", "item_loans.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

# --- Record Store (hosted backend) ---
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
# Session token of the signed-in user; rows are owned by this principal.
SUPABASE_ACCESS_TOKEN = os.getenv("SUPABASE_ACCESS_TOKEN", "")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "15"))

ITEMS_TABLE = "items"
LOANS_TABLE = "result"
EVENTS_TABLE = "events"
OWNER_FIELD = "registered_by"
DELETED_FLAG_FIELD = "item_deleted"

# --- Validation ---
DUPLICATE_CHECK_WORKERS = int(os.getenv("DUPLICATE_CHECK_WORKERS", "8"))
MAX_NAME_LENGTH = 50

# --- Statistics ---
# Timestamps from the store are timezone-aware; hours and ten-minute slots
# are computed in this zone.
LOCAL_TIMEZONE = os.getenv("LOCAL_TIMEZONE", "Asia/Tokyo")
SLOT_MINUTES = 10
SLOTS_PER_DAY = 24 * 60 // SLOT_MINUTES
MOST_BORROWED_LIMIT = 5

UNKNOWN_ITEM_NAME = "Unknown item"
DEFAULT_IMAGE = "https://placehold.jp/3b82f6/ffffff/150x150.png?text=No+Image"

# --- CSV Template ---
CSV_COLUMNS = ["item_id", "name", "genre", "manager"]
CSV_TEMPLATE_EXAMPLE = ["4912345678984", "Sample item", "Sample genre", "Sample manager"]
