"""
TrackRelay Configuration Loader
Loads values from settings.json via the settings manager.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

from settings import settings

# ==========================================
# Path Configuration
# ==========================================
ROOT_DIR = Path(__file__).parent

# ==========================================
# Version
# ==========================================
VERSION = "0.4.0"

# Only load .env if it exists
env_file = ROOT_DIR / '.env'
if env_file.exists():
    load_dotenv(env_file)

# Helper to prefer Env Var > Settings JSON > Default
def conf(key, default=None):
    # 1. Check Env Var (Highest Priority - good for docker/dev)
    env_val = os.getenv(key.upper().replace('.', '_'))
    if env_val is not None:
        return env_val

    # 2. Check Settings JSON
    json_val = settings.get(key)
    if json_val is not None:
        return json_val

    # 3. Default
    return default

def conf_bool(key, default=False):
    """Like conf(), but env strings such as "false" or "0" become real booleans"""
    val = conf(key, default)
    if isinstance(val, str):
        return val.strip().lower() in ("true", "1", "yes", "on")
    return bool(val)

# ==========================================
# EXPORTED CONFIG DICTS
# ==========================================

DEBUG = {
    "log_file": conf("debug.log_file", "track_relay.log"),
    "log_level": conf("debug.log_level", "INFO"),
    "log_providers": conf_bool("debug.log_providers", True),
    "log_now_playing": conf_bool("debug.log_now_playing", True),
    "log_to_console": conf_bool("debug.log_to_console", True),
    "log_detailed": conf_bool("debug.log_detailed", False),
}

SERVER = {
    "port": int(conf("server.port", 9012)),
    "host": conf("server.host", "0.0.0.0"),
    "debug": conf_bool("server.debug", False),
}

# Fixed pipeline constants (not configurable through settings.json)
NOW_PLAYING = {
    "key": "now-playing",
    "cache_ttl": 20.0,
    "fetch_timeout": 8.0,
    "rate_limit": {
        "max_requests": 10,
        "window": 60.0,
    },
    "auto_refresh_interval": 30.0,
    "heartbeat": {
        "ping_interval": 25.0,
        "ping_timeout": 60.0,
    },
}

CLIENT = {
    "url": conf("client.url", "ws://127.0.0.1:9012/ws/now-playing"),
    "reconnection_attempts": 5,
    "reconnection_delay": 1.0,
    "reconnection_delay_max": 5.0,
    "randomization_factor": 0.5,
    "timeout": 20.0,
}

# Secrets are read from the environment only (.env file), never from settings.json
PROVIDERS = {
    "listenbrainz": {
        "enabled": True,
        "base_url": conf("providers.listenbrainz.base_url", "https://api.listenbrainz.org"),
        "user": conf("listenbrainz.user", "p0ntus"),
        "token": os.getenv("LISTENBRAINZ_TOKEN", ""),
    },
    "lastfm": {
        "enabled": conf_bool("providers.lastfm.enabled", True),
        "base_url": conf("providers.lastfm.base_url", "https://ws.audioscrobbler.com"),
        "api_key": os.getenv("LASTFM_API_KEY", ""),
    },
    "coverartarchive": {
        "enabled": conf_bool("providers.coverartarchive.enabled", True),
        "base_url": conf("providers.coverartarchive.base_url", "https://coverartarchive.org"),
    },
    "musicbrainz": {
        "enabled": conf_bool("providers.musicbrainz.enabled", True),
        "base_url": conf("providers.musicbrainz.base_url", "https://musicbrainz.org"),
    },
}

# Helper functions
def get_provider_config(name: str) -> dict:
    return PROVIDERS.get(name, {"enabled": False})
