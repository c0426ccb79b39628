import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./nokn.db")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Client defaults
API_URL = os.getenv("NOKN_API_URL", "http://localhost:8000")
REQUEST_TIMEOUT = float(os.getenv("NOKN_TIMEOUT", "10"))

VERSION = "1.0.0"

# (id, title) in board order; every board gets exactly these.
DEFAULT_COLUMNS = (
    ("todo", "To-do"),
    ("inprogress", "In Progress"),
    ("complete", "Complete"),
)

PRIORITIES = ("low", "medium", "high")
DEFAULT_PRIORITY = "medium"

PLACEHOLDER_PREFIX = "temp-"
