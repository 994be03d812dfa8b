"""
Local record of which request messages a viewer has already opened.

There is no shared read cursor on the server: each viewer keeps, per view
(requester, general admin list, operational support, finance, pedagogical
purchases), its own set of viewed keys in a JSON file on the device running the
UI. The same message can therefore be unread in one view and read in another,
and two staff members on the same view never share a viewed-set.
"""
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Set, Union

logger = logging.getLogger(__name__)

VIEW_KEYS = {
    "user": "userViewedRequests",
    "solicitacoes": "adminViewedRequests",
    "operacional": "operacionalViewedRequests",
    "financeiro": "financeViewedRequests",
    "pedagogico": "pedAdminViewedRequests",
}


def message_key(request_id: str, timestamp: datetime) -> str:
    return f"{request_id}-{int(timestamp.timestamp() * 1000)}"


class UnreadTracker:
    """
    Viewed-set for one viewer on one view, persisted under
    ``state_dir/<viewer>/<storage key>.json``.

    Several sessions of the same viewer (browser tabs) may share the file, so
    every save merges with what is already on disk instead of overwriting it.

    Args:
        state_dir: Directory holding the JSON files.
        viewer: Uid of the logged-in user.
        view: One of ``VIEW_KEYS``.
    """

    def __init__(self, state_dir: Union[str, Path], viewer: str, view: str):
        if view not in VIEW_KEYS:
            raise ValueError(f"Visão desconhecida: {view}")
        if not viewer or viewer == ".." or Path(viewer).name != viewer:
            raise ValueError(f"Identificador de usuário inválido: {viewer!r}")
        self.viewer = viewer
        self.view = view
        self.storage_key = VIEW_KEYS[view]
        # Staff views count requester messages, the requester view counts staff replies.
        self.counts_admin_messages = view == "user"
        self.path = Path(state_dir) / viewer / f"{self.storage_key}.json"
        self._viewed: Set[str] = self._load()

    def _load(self) -> Set[str]:
        if not self.path.exists():
            return set()
        try:
            with open(self.path, encoding="utf-8") as f:
                return set(json.load(f))
        except (OSError, ValueError) as e:
            logger.warning(f"Cache de leitura '{self.path}' ilegível, recomeçando vazio: {e}")
            return set()

    def refresh(self) -> None:
        """Picks up keys saved by other sessions of the same viewer."""
        self._viewed |= self._load()

    def _save(self) -> None:
        os.makedirs(self.path.parent, exist_ok=True)
        self.refresh()
        tmp = self.path.parent / f"{self.path.name}.{os.getpid()}-{id(self)}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(sorted(self._viewed), f)
        os.replace(tmp, self.path)

    def is_viewed(self, key: str) -> bool:
        return key in self._viewed

    def mark_viewed(self, key: str) -> None:
        if key not in self._viewed:
            self._viewed.add(key)
            self._save()

    def _counts(self, message) -> bool:
        return message.is_admin == self.counts_admin_messages

    def count_unread(self, request) -> int:
        return sum(1 for msg in request.messages
                   if self._counts(msg) and not self.is_viewed(message_key(request.id, msg.timestamp)))

    def is_new_request(self, request) -> bool:
        return not self.is_viewed(request.id)

    def mark_request_viewed(self, request) -> None:
        """Marks the request and every counted message in it as viewed."""
        keys = {request.id}
        keys.update(message_key(request.id, msg.timestamp) for msg in request.messages if self._counts(msg))
        if not keys <= self._viewed:
            self._viewed |= keys
            self._save()

    def unread_counts(self, requests: Iterable) -> Dict[str, int]:
        counts = {}
        for request in requests:
            count = self.count_unread(request)
            if count:
                counts[request.id] = count
        return counts

    def total_unread(self, requests: Iterable) -> int:
        return sum(self.unread_counts(requests).values())
