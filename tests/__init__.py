import os

# config is read at import time; tests never talk to Telegram or the default DB
os.environ.setdefault("BOT_TOKEN", "123:test-token")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
