"""
TrackRelay Settings Manager
Handles dynamic configuration management using settings.json
"""

import json
import shutil
import os
import uuid
import ast
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass
from logging_config import get_logger

logger = get_logger(__name__)

ROOT_DIR = Path(__file__).parent

# Allow overriding the settings file location via environment variable (docker volumes, tests)
SETTINGS_FILE = Path(os.getenv("TRACKRELAY_SETTINGS_FILE", str(ROOT_DIR / "settings.json")))

@dataclass
class Setting:
    """Represents a single configurable setting"""
    name: str
    type: type
    default: Any
    requires_restart: bool = False
    category: Optional[str] = None
    description: Optional[str] = None
    options: Optional[list] = None  # For select

    def validate_and_convert(self, value: Any) -> Any:
        try:
            if self.type == bool and isinstance(value, str):
                return value.lower() in ('true', '1', 'yes', 'on')

            if self.type == list:
                if isinstance(value, list):
                    return value
                if isinstance(value, str):
                    value = value.strip()
                    try:
                        parsed = ast.literal_eval(value)
                        if isinstance(parsed, list):
                            return parsed
                    except (ValueError, SyntaxError):
                        pass
                    clean_value = value.strip("[]")
                    if clean_value:
                        return [v.strip().strip("'").strip('"') for v in clean_value.split(',') if v.strip()]
                    return []
                return self.default

            return self.type(value)
        except (ValueError, TypeError):
            return self.default

class SettingsManager:
    def __init__(self, settings_file: Path = SETTINGS_FILE):
        self._settings: Dict[str, Any] = {}
        self.settings_file = settings_file

        # Define all available settings
        self._definitions = {
            # Debug
            "debug.log_file": Setting("Log File", str, "track_relay.log", True, "Debug", "Log file name"),
            "debug.log_level": Setting("Log Level", str, "INFO", True, "Debug", "Logging verbosity", options=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
            "debug.log_providers": Setting("Log Providers", bool, True, False, "Debug", "Log provider requests"),
            "debug.log_now_playing": Setting("Log Now Playing", bool, True, False, "Debug", "Log aggregation and session activity"),
            "debug.log_to_console": Setting("Log to Console", bool, True, False, "Debug", "Print logs to terminal"),
            "debug.log_detailed": Setting("Detailed Logging", bool, False, False, "Debug", "Write DEBUG records to the log file"),

            # Server
            "server.port": Setting("Port", int, 9012, True, "Server", "Server port"),
            "server.host": Setting("Host", str, "0.0.0.0", True, "Server", "Bind address"),
            "server.debug": Setting("Server Debug", bool, False, True, "Server", "Quart debug mode"),

            # Listening history
            "listenbrainz.user": Setting("ListenBrainz User", str, "p0ntus", True, "Providers", "User whose playing-now slot is tracked"),

            # Providers
            "providers.lastfm.enabled": Setting("Last.fm", bool, True, True, "Providers", "Query Last.fm for enrichment (needs LASTFM_API_KEY)"),
            "providers.coverartarchive.enabled": Setting("Cover Art Archive", bool, True, True, "Providers", "Resolve artwork by release MBID"),
            "providers.musicbrainz.enabled": Setting("MusicBrainz Search", bool, True, True, "Providers", "Search releases when no MBID is known"),

            # Watch client
            "client.url": Setting("Client URL", str, "ws://127.0.0.1:9012/ws/now-playing", False, "Client", "WebSocket endpoint used by --watch"),
        }

        self.load_settings()

    def load_settings(self) -> None:
        """Load settings from JSON, fall back to defaults"""
        self._settings = {}

        # 1. Load defaults first
        for key, definition in self._definitions.items():
            self._settings[key] = definition.default

        # 2. Load from JSON if exists
        if self.settings_file.exists():
            try:
                with open(self.settings_file, 'r', encoding='utf-8') as f:
                    saved = json.load(f)
                for key, val in saved.items():
                    if key in self._definitions:
                        self._settings[key] = self._definitions[key].validate_and_convert(val)
                    else:
                        # Lenient: keep unknown keys as-is
                        self._settings[key] = val
            except (OSError, ValueError, AttributeError) as e:
                logger.error(f"Failed to load {self.settings_file.name}: {e} - resetting to defaults")
                backup_path = self.settings_file.with_suffix('.json.corrupted')
                try:
                    shutil.copy2(self.settings_file, backup_path)
                    logger.info(f"Backed up corrupted settings to {backup_path}")
                except OSError as copy_error:
                    logger.warning(f"Could not back up corrupted settings: {copy_error}")
                self._settings = {key: d.default for key, d in self._definitions.items()}
                self.save_to_config()

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.
        Priority:
        1. Loaded value (from JSON or Schema Default)
        2. Schema Default (if key in definitions but not in settings dict yet)
        3. Provided 'default' argument (if key unknown)
        """
        if key in self._settings:
            return self._settings[key]

        if key in self._definitions:
            return self._definitions[key].default

        return default

    def save_to_config(self) -> None:
        """Save current memory settings to JSON file"""
        # Unique temp filename so concurrent saves don't clobber each other
        temp_path = self.settings_file.parent / f"settings_{uuid.uuid4().hex}.json.tmp"
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(self._settings, f, indent=4, sort_keys=True)
            os.replace(temp_path, self.settings_file)
        except OSError as e:
            logger.error(f"Failed to save settings: {e}")
            if temp_path.exists():
                temp_path.unlink()

settings = SettingsManager()
