"""
User-facing notifications (the toast line of the web front-end).
"""
from typing import Callable, List, Optional, Tuple

from bitable_ledger.utils.logger import get_logger

logger = get_logger(__name__)

SUCCESS = "success"
ERROR = "error"


class Notifier:
    """Records every message and forwards it to an optional sink (CLI printer, UI)."""

    def __init__(self, sink: Optional[Callable[[str, str], None]] = None):
        self.sink = sink
        self.history: List[Tuple[str, str]] = []

    def _send(self, kind: str, message: str):
        self.history.append((kind, message))
        if self.sink:
            self.sink(kind, message)

    def success(self, message: str):
        logger.info(message)
        self._send(SUCCESS, message)

    def error(self, message: str):
        logger.error(message)
        self._send(ERROR, message)

    @property
    def last(self) -> Optional[Tuple[str, str]]:
        return self.history[-1] if self.history else None
