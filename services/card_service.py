"""
卡牌服務：產生不重複的隨機卡牌號碼

純計算邏輯，不涉及房間狀態
"""
import random
from typing import List, Optional

DEFAULT_UNIVERSE_SIZE = 100


def allocate_cards(
    count: int,
    universe_size: int = DEFAULT_UNIVERSE_SIZE,
    rng: Optional[random.Random] = None
) -> List[int]:
    """
    從 1..universe_size 中不放回地抽出 count 張卡

    參數：
        count: 需要的卡牌數量
        universe_size: 號碼範圍上限（含）
        rng: 隨機數產生器（測試時可傳入固定 seed）

    返回：
        兩兩不重複的整數列表，順序即抽出順序

    注意：
        - count > universe_size 時只會回傳 universe_size 張
        - 呼叫者必須檢查長度，長度不足視為錯誤（不可部分分配）
    """
    if count <= 0:
        return []

    rng = rng or random
    available = range(1, universe_size + 1)
    return rng.sample(available, min(count, universe_size))
