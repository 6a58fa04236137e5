from __future__ import annotations

from typing import Any, Dict, Set

from fastapi import WebSocket


class ConnectionManager:
    """Websocket fan-out keyed by a client-chosen id (one browser tab may
    generate a quiz and watch its progress under the same id)."""

    def __init__(self) -> None:
        self.client_id_to_connections: Dict[str, Set[WebSocket]] = {}

    async def connect(self, client_id: str, websocket: WebSocket) -> None:
        # visible to senders before the client sees the handshake
        self.client_id_to_connections.setdefault(client_id, set()).add(websocket)
        await websocket.accept()

    def disconnect(self, client_id: str, websocket: WebSocket) -> None:
        connections = self.client_id_to_connections.get(client_id)
        if not connections:
            return
        connections.discard(websocket)
        if not connections:
            self.client_id_to_connections.pop(client_id, None)

    async def send_json(self, client_id: str, message: Dict[str, Any]) -> None:
        connections = self.client_id_to_connections.get(client_id)
        if not connections:
            return
        to_remove: Set[WebSocket] = set()
        for ws in list(connections):
            try:
                await ws.send_json(message)
            except Exception:
                to_remove.add(ws)
        for ws in to_remove:
            self.disconnect(client_id, ws)


def progress_message(stage: str, progress: int, message: str) -> Dict[str, Any]:
    return {"event": "progress", "stage": stage, "progress": progress, "message": message}
