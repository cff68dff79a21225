# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets (access tokens, API keys). Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "ISTIQAMAH_APP_NAME": "App display name (default: istiqamah).",
    "ISTIQAMAH_LOG_LEVEL": "Console logging level (default: INFO).",
    "ISTIQAMAH_CONSOLE_ENABLED": "Run the console REPL (true/false, default: true).",
    # Paths (gitignored)
    "ISTIQAMAH_DATA_DIR": "Local data directory (default: .local/istiqamah).",
    "ISTIQAMAH_LOCAL_DB_PATH": "Local key-value SQLite path (default: <data_dir>/practice.sqlite3).",
    # Calendar
    "ISTIQAMAH_TIMEZONE": "IANA timezone for day boundaries, e.g. Asia/Jakarta (default: system local).",
    # Identity / remote store (all optional; empty user id => local-only mode)
    "ISTIQAMAH_USER_ID": "Authenticated user id; enables synced storage when a remote URL is set.",
    "ISTIQAMAH_ACCESS_TOKEN": "Bearer token of the signed-in user.",
    "ISTIQAMAH_REMOTE_URL": "Base URL of the record store (PostgREST-style, /rest/v1 is appended).",
    "ISTIQAMAH_REMOTE_API_KEY": "Project API key sent as the apikey header.",
    "ISTIQAMAH_REMOTE_TIMEOUT_SECONDS": "HTTP timeout (default: 10).",
    # Engine tuning
    "ISTIQAMAH_MIDNIGHT_CHECK_INTERVAL_SECONDS": "Midnight watcher poll interval (default: 30).",
    "ISTIQAMAH_YELLOW_CARD_RETENTION_DAYS": "Cards older than this are pruned on load (default: 30).",
    "ISTIQAMAH_PENALTY_WINDOW_DAYS": "Trailing window for counting cards (default: 7).",
    "ISTIQAMAH_STREAK_RESET_THRESHOLD": "Cards in the window that reset the streak (default: 3).",
    "ISTIQAMAH_STREAK_RISK_THRESHOLD": "Cards in the window that mark the streak at risk (default: 2).",
    "ISTIQAMAH_WRITE_BEHIND": "Persist on a background thread (true/false, default: true).",
}
