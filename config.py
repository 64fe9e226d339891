from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    client_url: str = "http://localhost:3000"
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"

    # 斷線後保留玩家狀態的時間（秒）
    grace_period_seconds: float = 120.0
    # 卡牌號碼範圍 1..card_universe_size
    card_universe_size: int = 100
    room_id_length: int = 8

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()
