"""
命名服務：生成 Room ID

純計算邏輯，不涉及狀態轉換
"""
import uuid


def generate_room_id(length: int = 8) -> str:
    """
    生成隨機的短房間 ID（uuid4 hex 前 length 碼）

    範例：3f9a1c2e, b04d77aa

    注意：
    - 不檢查唯一性（由呼叫者負責）
    - 16^8 ≈ 43 億種可能，碰撞機率極低
    """
    return uuid.uuid4().hex[:length]
