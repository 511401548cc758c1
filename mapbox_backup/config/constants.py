"""Pure constants for the backup run. No side effects at import time."""

# === API ===
MAPBOX_API_URL = "https://api.mapbox.com"
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds
DEFAULT_PAGE_LIMIT = 100  # items requested per list page

# === Output ===
DEFAULT_OUTPUT_DIR = "output"  # Used when the account name is unknown
JSON_INDENT = 2

# === Concurrency (in-flight requests per category fan-out) ===
STYLE_ARTIFACT_CONCURRENCY = 64
LISTING_CONCURRENCY = 32
DATASET_FEATURE_CONCURRENCY = 8

# === Rate budgets (requests per refill interval) ===
# Styles API is limited to 2000 requests per 60 seconds
STYLES_RATE_RESERVOIR = 2000
STYLES_RATE_INTERVAL = 60.0
# Datasets API read limit
DATASETS_RATE_RESERVOIR = 480
DATASETS_RATE_INTERVAL = 60.0

# === Retry ===
MAX_THROTTLE_RETRIES = 5  # Retries after the first attempt
THROTTLE_RETRY_DELAY = 1.0  # Fixed backoff in seconds

# === Backup scopes ===
BACKUP_SCOPES = (
    "styles-list",
    "style-documents",
    "style-sprites",
    "tilesets-list",
    "datasets-list",
    "dataset-documents",
    "tokens-list",
)

# Sub-artifact scopes cannot run without their list
SCOPE_REQUIRES = {
    "style-documents": "styles-list",
    "style-sprites": "styles-list",
    "dataset-documents": "datasets-list",
}
