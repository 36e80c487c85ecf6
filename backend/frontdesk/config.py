"""
应用配置
从环境变量或 .env 文件读取配置
"""
from typing import List
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "Frontdesk"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./frontdesk.db"

    # JWT 配置
    SECRET_KEY: str = "frontdesk-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # 计费配置
    TAX_RATE: float = 0.10                 # 发票税率
    PEAK_OCCUPANCY_THRESHOLD: float = 75.0  # 高峰日入住率阈值（百分比）

    # 定时清理任务（默认关闭）
    SWEEP_SCHEDULER_ENABLED: bool = False
    NO_SHOW_SWEEP_HOUR: int = 23           # 每日 no-show 清理的小时
    AUTO_CANCEL_SWEEP_MINUTES: int = 30    # 自动标记 Missing 的轮询间隔

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()
