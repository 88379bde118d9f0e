"""
WebSocket通知モジュール
レート制限のブロック/解除イベントを接続中のクライアントへ配信する。
"""

import asyncio
import json
import logging

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self):
        # WebSocket接続のリスト（リアルタイム通知用）
        self.connections: list = []
        self._tasks: set = set()

    async def notify(self, data: dict):
        """WebSocket接続にデータを送信する"""
        if not self.connections:
            return
        message = json.dumps(data, ensure_ascii=False)
        disconnected = []
        for ws in self.connections:
            try:
                await ws.send_text(message)
            except Exception as e:
                logger.debug("Dropping WebSocket connection: %s", e)
                disconnected.append(ws)
        for ws in disconnected:
            self.connections.remove(ws)

    def rate_limit_listener(self, key: str, event):
        """RateLimiter のリスナー。イベントループ上で送信タスクを起動する"""
        task = asyncio.get_running_loop().create_task(self.notify({
            "type": "rate_limit",
            "data": {"action": key, "event": event.value},
        }))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
