"""
Local persistence for the client configuration (one JSON blob).
"""
import json
import os
from typing import Optional

from pydantic import ValidationError

from bitable_ledger import config
from bitable_ledger.models.app_config import AppConfig
from bitable_ledger.utils.logger import get_logger

logger = get_logger(__name__)


class ConfigStore:
    def __init__(self, path: Optional[str] = None):
        self.path = path or config.LEDGER_CONFIG_PATH

    def load(self) -> AppConfig:
        """Saved values merged over defaults; unreadable files fall back to defaults."""
        if not os.path.exists(self.path):
            return AppConfig()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                saved = json.load(f)
            return AppConfig.model_validate(saved if isinstance(saved, dict) else {})
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable config {self.path}: {e}")
            return AppConfig()

    def save(self, app_config: AppConfig):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(app_config.model_dump(by_alias=True), f, ensure_ascii=False, indent=2)
