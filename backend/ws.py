from fastapi import WebSocket


class ConnectionManager:
    def __init__(self):
        self.alert_connections: list[WebSocket] = []

    async def connect_alerts(self, ws: WebSocket):
        await ws.accept()
        self.alert_connections.append(ws)

    def disconnect_alerts(self, ws: WebSocket):
        if ws in self.alert_connections:
            self.alert_connections.remove(ws)

    async def broadcast_alerts(self, data: dict):
        for ws in list(self.alert_connections):
            try:
                await ws.send_json(data)
            except Exception:
                self.disconnect_alerts(ws)


manager = ConnectionManager()
