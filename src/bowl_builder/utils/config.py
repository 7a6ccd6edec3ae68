"""
Configuration utilities for the Bowl Builder tooling.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv


class Config:
    """Configuration manager for the Bowl Builder project."""

    def __init__(self, env_file: Optional[str] = None) -> None:
        """Initialize configuration.

        If an env_file path is provided, load environment variables from it.
        Otherwise, do not auto-load a .env file to keep defaults predictable.
        """
        self.env_file = env_file
        self._load_environment()
        self._config = self._load_config()

    def _load_environment(self) -> None:
        """Load environment variables from explicit .env file if provided."""
        if not self.env_file:
            return
        env_path = Path(self.env_file)
        if env_path.exists():
            load_dotenv(env_path)

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        return {
            # Core settings
            "log_level": self._get_str("LOG_LEVEL", default="INFO"),
            # MongoDB settings for the catalog store
            "mongo_url": self._get_str("DB_CONNECTION_URL", default=""),
            "mongo_db": self._get_str("DB_NAME", default="BOWL_BUILDER"),
            # Catalog record types and field keys
            "ingredient_type": self._get_str("INGREDIENT_TYPE", default="metaingredientes"),
            "bowl_template_type": self._get_str("BOWL_TEMPLATE_TYPE", default="bowl_model"),
            "category_field": self._get_str("CATEGORY_FIELD_KEY", default="categoria"),
            "allergen_field": self._get_str("ALLERGEN_FIELD_KEY", default="alergenos"),
            # Pricing
            "currency_code": self._get_str("CURRENCY_CODE", default="EUR"),
            # Cascade fan-out (0 = dispatch every update at once)
            "fanout_limit": self._get_int("CASCADE_FANOUT_LIMIT", default=0),
        }

    def _get_str(self, key: str, default: str = "") -> str:
        """Get string configuration value."""
        if self.env_file is None:
            return default
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int = 0) -> int:
        """Get integer configuration value."""
        if self.env_file is None:
            return default
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self._config.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Get configuration value using bracket notation."""
        return self._config[key]

    def __contains__(self, key: str) -> bool:
        """Check if configuration key exists."""
        return key in self._config
