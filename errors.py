"""
例外定義モジュール
CIDR解析・アドレス生成・セッション操作で発生するエラーを定義する。
"""


class CIDRError(ValueError):
    """CIDR関連エラーの基底クラス"""


class MalformedCIDR(CIDRError):
    """"/" 区切りがない、またはプレフィックス長が不正"""


class MalformedAddress(CIDRError):
    """セグメント数が不正、または値が範囲外"""


class EmptyRangeList(CIDRError):
    """指定アドレスファミリーのレンジが1つもない"""


class SessionError(Exception):
    """セッション操作エラーの基底クラス"""


class ActionBlocked(SessionError):
    """レート制限によりアクションが拒否された"""

    def __init__(self, action: str):
        super().__init__(f"action '{action}' is rate limited")
        self.action = action


class NoLocationSelected(SessionError):
    """ロケーションが未選択"""


class UnknownLocation(SessionError):
    """存在しないロケーションIDが指定された"""

    def __init__(self, location_id: str):
        super().__init__(f"unknown location: {location_id}")
        self.location_id = location_id
