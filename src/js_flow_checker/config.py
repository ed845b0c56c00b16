"""
Configuration module for managing environment variables and settings.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


DEFAULT_EXTENSIONS = ".js,.jsx,.mjs,.cjs,.html,.htm"


class Config:
    """Configuration manager for resolver and taint tracker settings."""

    def __init__(self, env_path: Optional[Path] = None):
        """
        Initialize configuration and load environment variables.

        Args:
            env_path: Optional path to a .env file (defaults to the project root)
        """
        if env_path is None:
            env_path = Path(__file__).parent.parent.parent / ".env"
        load_dotenv(env_path)

        self._raw_min_name_length: str = os.getenv("JSFLOW_MIN_NAME_LENGTH", "4")
        self.min_name_length: int = self._parse_int(self._raw_min_name_length, 4)

        self.extensions: List[str] = self._parse_extensions(
            os.getenv("JSFLOW_EXTENSIONS", DEFAULT_EXTENSIONS)
        )

        # Substrings matched against declared variable names
        self.source_pattern: str = os.getenv("JSFLOW_SOURCE_PATTERN", "source")
        self.sink_pattern: str = os.getenv("JSFLOW_SINK_PATTERN", "sink")

        self.base_url: Optional[str] = os.getenv("JSFLOW_BASE_URL") or None

    @staticmethod
    def _parse_int(value: str, default: int) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    @staticmethod
    def _parse_extensions(value: str) -> List[str]:
        extensions = []
        for ext in value.split(","):
            ext = ext.strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = "." + ext
            extensions.append(ext)
        return extensions

    def validate(self) -> dict:
        """
        Validate the loaded settings.

        Returns:
            Dictionary with validation results
        """
        missing = []
        warnings = []

        if not self._raw_min_name_length.strip().lstrip("-").isdigit():
            warnings.append(
                f"JSFLOW_MIN_NAME_LENGTH={self._raw_min_name_length!r} is not an integer - using {self.min_name_length}"
            )
        elif self.min_name_length < 1:
            warnings.append("JSFLOW_MIN_NAME_LENGTH below 1 - every bare dependency name will be guessed")

        if not self.extensions:
            warnings.append("JSFLOW_EXTENSIONS is empty - project trees will contain no files")

        if not self.source_pattern:
            warnings.append("JSFLOW_SOURCE_PATTERN is empty - every declared variable is a source")

        if not self.sink_pattern:
            warnings.append("JSFLOW_SINK_PATTERN is empty - every declared variable is a sink")

        return {
            "valid": len(missing) == 0,
            "missing": missing,
            "warnings": warnings,
        }


# Global config instance
config = Config()
