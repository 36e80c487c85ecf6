"""
事件总线 - 进程内发布/订阅
业务服务在事务提交后发布事件，预订动态等订阅方由 event_handlers 注册
"""
import logging
import threading
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, DefaultDict, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

Handler = Callable[["Event"], None]


@dataclass
class Event:
    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class EventBus:
    """
    同步事件总线

    处理器按订阅顺序在发布线程内执行；单个处理器抛错只记日志，
    其余处理器照常执行，已提交的业务操作不受影响
    """

    def __init__(self, history_size: int = 200):
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)
        self._recent: Deque[Event] = deque(maxlen=history_size)
        self._guard = threading.RLock()

    def subscribe(self, event_type: str, handler: Handler) -> None:
        with self._guard:
            if handler in self._handlers[event_type]:
                return
            self._handlers[event_type].append(handler)
        logger.debug(f"{getattr(handler, '__qualname__', handler)} -> {event_type}")

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        with self._guard:
            if handler in self._handlers.get(event_type, []):
                self._handlers[event_type].remove(handler)

    def publish(self, event: Event) -> int:
        """发布事件，返回成功执行的处理器数"""
        with self._guard:
            self._recent.append(event)
            targets = tuple(self._handlers.get(event.event_type, ()))

        delivered = 0
        for handler in targets:
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception(f"Handler {getattr(handler, '__qualname__', handler)} "
                                 f"failed on {event.event_type} ({event.event_id})")
        return delivered

    def get_history(self, event_type: Optional[str] = None, limit: int = 50) -> List[Event]:
        """最近的事件，最新在前"""
        with self._guard:
            recent = [e for e in reversed(self._recent) if event_type is None or e.event_type == event_type]
        return recent[:limit]

    def clear(self) -> None:
        """清空订阅与历史（测试用）"""
        with self._guard:
            self._handlers.clear()
            self._recent.clear()


event_bus = EventBus()
