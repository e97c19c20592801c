import os
from dotenv import load_dotenv

load_dotenv()

BOT_TOKEN = os.getenv("BOT_TOKEN")
owner_env = os.getenv("OWNER_ID")
OWNER_ID = int(owner_env) if owner_env and owner_env.strip() else 0


def parse_admin_ids(raw):
    """Comma-separated Telegram user ids -> frozenset of ints (blanks and junk skipped)."""
    ids = set()
    for part in (raw or "").split(","):
        part = part.strip()
        if part.lstrip("-").isdigit():
            ids.add(int(part))
    return frozenset(ids)


ADMIN_IDS = parse_admin_ids(os.getenv("ADMINS")) | ({OWNER_ID} if OWNER_ID else frozenset())
DB_PATH = os.getenv("DB_PATH", "data/cricket.db").strip()
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "3"))
SCORING_METHOD = os.getenv("SCORING_METHOD", "advanced").strip().lower()
BOT_SERVICE_TOKEN = os.getenv("BOT_SERVICE_TOKEN", "").strip()
LEADERBOARD_SIZE = int(os.getenv("LEADERBOARD_SIZE", "10"))
