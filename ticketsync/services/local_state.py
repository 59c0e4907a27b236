"""
Client-local persisted state

A small JSON file standing in for browser local storage: the last allocated
ticket number and the currently selected ticket. It is scoped to one client
install and never shared.
"""
import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ticketsync.utils.logger import get_logger

logger = get_logger(__name__)

LAST_TICKET_NUMBER_KEY = "lastTicketNumber_ai_gotcha"
CURRENT_TICKET_ID_KEY = "currentTicketId_ai_gotcha"


class LocalState:
    """String key/value pairs persisted to a JSON file"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable local state {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    @property
    def current_ticket_id(self) -> Optional[str]:
        return self.get(CURRENT_TICKET_ID_KEY)

    @current_ticket_id.setter
    def current_ticket_id(self, ticket_id: Optional[str]) -> None:
        if ticket_id is None:
            self.remove(CURRENT_TICKET_ID_KEY)
        else:
            self.set(CURRENT_TICKET_ID_KEY, ticket_id)
