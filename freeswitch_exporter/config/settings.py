"""Environment settings."""

import os
from typing import Any, Dict


class Settings:
    """Application settings from environment variables."""

    # Environment variable -> (section, field) in ExporterConfig
    ENV_FIELDS = {
        "FREESWITCH_SCRAPE_URI": ("freeswitch", "scrape_uri"),
        "FREESWITCH_PASSWORD": ("freeswitch", "password"),
        "FREESWITCH_TIMEOUT": ("freeswitch", "timeout"),
        "WEB_LISTEN_ADDRESS": ("web", "listen_address"),
        "WEB_TELEMETRY_PATH": ("web", "telemetry_path"),
        "LOG_LEVEL": ("logging", "level"),
    }

    @staticmethod
    def get(key: str) -> str:
        """
        Get environment variable value.

        Args:
            key: Environment variable name

        Returns:
            str: Environment variable value, "" when unset
        """
        return os.getenv(key, "")

    @staticmethod
    def overrides() -> Dict[str, Dict[str, Any]]:
        """
        Collect configuration overrides from the environment.

        Returns:
            dict: Nested overrides for ConfigLoader.build, only for set variables
        """
        result: Dict[str, Dict[str, Any]] = {}
        for key, (section, field) in Settings.ENV_FIELDS.items():
            value = Settings.get(key)
            if value:
                result.setdefault(section, {})[field] = value
        return result
