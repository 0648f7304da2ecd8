"""Server-wide configuration constants for Era Genética Server."""

import os

DATA_DIR = os.environ.get("DATA_DIR", ".")  # Persistent data directory
STORE_FILE = os.environ.get("STORE_FILE", os.path.join(DATA_DIR, "documents.json"))
TOKENS_FILE = os.path.join(DATA_DIR, "tokens.json")
ADMIN_SECRET = os.environ.get("ADMIN_SECRET", "change-me-in-production")
SECRET_FILE = os.path.join(DATA_DIR, "admin_secret.txt")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

CHARACTERS_COLLECTION = "characters"
ADMIN_SETTINGS_COLLECTION = "adminSettings"

DEFAULT_CHARACTER_NAME = "Novo Aventureiro"
DEFAULT_LEVEL = 1
DEFAULT_MAX_HEALTH = 100
DEFAULT_MAX_CHAKRA = 50


def load_secret() -> None:
    """Load admin secret from persistent file, if it exists."""
    global ADMIN_SECRET
    if os.path.exists(SECRET_FILE):
        with open(SECRET_FILE) as f:
            stored = f.read().strip()
        if stored:
            ADMIN_SECRET = stored


def save_secret() -> None:
    """Persist current admin secret to file (atomic write)."""
    tmp_path = SECRET_FILE + ".tmp"
    with open(tmp_path, "w") as f:
        f.write(ADMIN_SECRET)
    os.replace(tmp_path, SECRET_FILE)
