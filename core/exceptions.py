"""
自定義異常類別

集中管理所有業務邏輯異常，方便 dispatch 邊界統一轉成 error 事件

每個異常都帶有 message（會原樣送回給發出事件的連線）
"""


class ThemeTierException(Exception):
    """所有房間異常的基類"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# ============ 驗證相關異常 ============

class ValidationError(ThemeTierException):
    """必填欄位缺少或為空白、payload 格式錯誤"""
    pass


# ============ 查找相關異常 ============

class NotFoundError(ThemeTierException):
    """房間或玩家不存在"""
    pass


class RoomNotFound(NotFoundError):
    """房間不存在"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__("Room not found")


class PlayerNotFound(NotFoundError):
    """玩家不存在（依名稱查找）"""
    def __init__(self, player_name):
        self.player_name = player_name
        super().__init__("Player not found")


class RoomAlreadyExists(ThemeTierException):
    """房間代碼已被使用"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} already exists")


# ============ 權限相關異常 ============

class AuthorizationError(ThemeTierException):
    """非 master 嘗試執行特權操作"""
    pass


class NotRoomMaster(AuthorizationError):
    """呼叫者不是房間 master"""
    pass


class CannotRemoveMaster(AuthorizationError):
    """master 不能被移除"""
    def __init__(self):
        super().__init__("Master cannot remove themselves")


# ============ 卡牌相關異常 ============

class AllocationShortfall(ThemeTierException):
    """卡牌池不足以讓每位玩家拿到不重複的卡"""
    def __init__(self, requested: int, universe_size: int):
        self.requested = requested
        self.universe_size = universe_size
        super().__init__("Failed to generate unique numbers")
