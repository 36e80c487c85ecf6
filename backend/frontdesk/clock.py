"""
时钟抽象
业务代码通过注入的时钟获取“当前时间”，便于测试 no-show 清理与入住/退房时间戳
"""
from datetime import datetime, date, timedelta
from typing import Optional, Protocol


class Clock(Protocol):
    """时钟接口"""

    def now(self) -> datetime:
        ...


class SystemClock:
    """系统时钟（本地时间，无时区）"""

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """固定时钟，测试中使用，可手动推进"""

    def __init__(self, current: Optional[datetime] = None):
        self.current = current or datetime(2025, 1, 1, 12, 0, 0)

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.date()

    def advance(self, **delta) -> None:
        self.current = self.current + timedelta(**delta)


system_clock = SystemClock()
