"""
レート制限モジュール
アクション（ipv4 / ipv6 / copy）ごとにスライディングウィンドウで連打を検出し、
しきい値に達したらクールダウン期間中すべての操作を拒否する。
"""

import asyncio
import enum
import logging
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# 既定で用意するアクションキー
DEFAULT_KEYS = ("ipv4", "ipv6", "copy")

WINDOW_SECONDS = 3.0      # この時間を超えて間隔が空いたらカウントをリセット
THRESHOLD = 5             # ウィンドウ内でこの回数に達したらブロック
COOLDOWN_SECONDS = 10.0   # ブロック解除までの時間


class RateLimitEvent(str, enum.Enum):
    BLOCKED = "blocked"
    CLEARED = "cleared"


@dataclass
class RateLimitState:
    """アクションキー1つ分の状態"""
    count: int = 0
    last_click: float | None = None
    blocked: bool = False
    # ブロックごとに進む世代番号（古いタイマーの判定用）
    generation: int = 0
    # タイマーを登録できなかった場合の解除時刻（次回呼び出し時に判定）
    blocked_until: float | None = None


def _loop_scheduler(delay: float, callback):
    """実行中のイベントループでワンショットタイマーを登録する"""
    return asyncio.get_running_loop().call_later(delay, callback)


class RateLimiter:
    """
    キーごとの状態機械: Idle → Accumulating → Blocked → Idle。
    check_and_record は拒否すべき場合に True を返す。
    イベントループのスレッドからのみ呼び出す前提（ロック不要）。
    ループ外で呼ばれた場合は解除時刻を記録し、次回呼び出し時に解除を判定する。
    """

    def __init__(self, window: float = WINDOW_SECONDS, threshold: int = THRESHOLD,
                 cooldown: float = COOLDOWN_SECONDS, keys=DEFAULT_KEYS,
                 clock=time.monotonic, scheduler=_loop_scheduler):
        self.window = window
        self.threshold = threshold
        self.cooldown = cooldown
        self._clock = clock
        self._schedule = scheduler
        self._states: dict[str, RateLimitState] = {key: RateLimitState() for key in keys}
        self._listeners = []

    def add_listener(self, callback):
        """ブロック/解除イベントの通知先を登録する。callback(key, event)"""
        self._listeners.append(callback)

    def state(self, key: str) -> RateLimitState:
        if key not in self._states:
            self._states[key] = RateLimitState()
        return self._states[key]

    def snapshot(self) -> dict:
        return {
            key: {"count": s.count, "blocked": s.blocked}
            for key, s in self._states.items()
        }

    def is_blocked(self, key: str) -> bool:
        return self.state(key).blocked

    def check_and_record(self, key: str) -> bool:
        """操作を1回記録し、拒否すべきなら True を返す"""
        state = self.state(key)
        now = self._clock()
        if state.blocked and state.blocked_until is not None and now >= state.blocked_until:
            self._unblock(key, state.generation)
        if state.blocked:
            return True

        if state.last_click is None or now - state.last_click > self.window:
            state.count = 1
            state.last_click = now
            return False

        state.count += 1
        state.last_click = now

        if state.count >= self.threshold:
            generation = state.generation + 1
            blocked_until = None
            try:
                self._schedule(self.cooldown, lambda: self._unblock(key, generation))
            except Exception as e:
                # イベントループ外: 次回呼び出し時に解除時刻で判定する
                logger.debug("Unblock timer unavailable for '%s': %s", key, e)
                blocked_until = now + self.cooldown
            state.blocked = True
            state.generation = generation
            state.blocked_until = blocked_until
            logger.warning("Rate limit reached for '%s'; blocked for %.0fs", key, self.cooldown)
            self._emit(key, RateLimitEvent.BLOCKED)
            return True

        return False

    def reset(self, key: str):
        """キーの状態を即座に初期化する"""
        state = self.state(key)
        was_blocked = state.blocked
        state.count = 0
        state.blocked = False
        state.blocked_until = None
        if was_blocked:
            self._emit(key, RateLimitEvent.CLEARED)

    def _unblock(self, key: str, generation: int):
        state = self.state(key)
        # 既に別経路でリセット済み、または新しいブロックに置き換わっていれば何もしない
        if not state.blocked or state.generation != generation:
            return
        state.count = 0
        state.blocked = False
        state.blocked_until = None
        logger.info("Rate limit cleared for '%s'", key)
        self._emit(key, RateLimitEvent.CLEARED)

    def _emit(self, key: str, event: RateLimitEvent):
        for listener in self._listeners:
            try:
                listener(key, event)
            except Exception:
                logger.exception("Rate limit listener failed for '%s'", key)
