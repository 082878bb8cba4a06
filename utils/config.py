# Config flags and runtime settings

import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


CONFIG = {
    "debug_mode": _env_flag("DEBUG_MODE"),

    # Outbound API client
    "api": {
        "base_url": os.getenv("HABITGRID_API_URL", "http://localhost:5000"),
        "timeout_s": 10,
    },

    # Where the bearer credential lives between CLI runs
    "session": {
        "token_path": os.getenv("HABITGRID_TOKEN_FILE", "~/.habitgrid/session.json"),
        "token_key": "token",
    },

    # Calendar derivation + rendering
    "calendar": {
        "tz": os.getenv("HABITGRID_TZ", "UTC"),
        "colors": {
            "completed": "#4caf50",   # green
            "overdue": "#f44336",     # red
            "upcoming": "#2196f3",    # blue
        },
        "text_color": "#ffffff",
        "border_color": "transparent",
        "default_view": "month",      # month | week | day
    },

    # Views that must never bounce back to login on a 401
    "routes": {
        "login": "/login",
        "register": "/register",
        "calendar": "/calendar",
    },

    # API server
    "server": {
        "host": os.getenv("HOST", "127.0.0.1"),
        "port": int(os.getenv("PORT", 5000)),
        "db_path": os.getenv("HABITGRID_DB_PATH", "data/habitgrid_db.json"),
        "secret_key": os.getenv("HABITGRID_SECRET_KEY", "habitgrid-dev-secret"),
        "algorithm": "HS256",
        "min_password_length": 6,
    },

    "logging": {
        "level": os.getenv("LOG_LEVEL", "INFO"),
        "file": os.getenv("LOG_FILE", "logs/habitgrid.log"),
        "max_bytes": 5_000_000,
        "backup_count": 3,
    },
}
