"""
清理任务调度 - APScheduler 后台调度
每日 no-show 清理与周期性自动标记未到店，每次运行使用独立会话
"""
import logging
from typing import Callable, Dict, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from frontdesk.clock import Clock, system_clock
from frontdesk.config import settings
from frontdesk.database import SessionLocal
from frontdesk.models.ontology import Hotel
from frontdesk.services.sweep_service import SweepService

logger = logging.getLogger(__name__)

NO_SHOW_JOB_ID = "no_show_sweep"
AUTO_CANCEL_JOB_ID = "auto_cancel_sweep"


class SweepScheduler:
    """基于 APScheduler 的清理任务调度器"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal,
                 scheduler: Optional[BackgroundScheduler] = None, clock: Clock = None):
        self._session_factory = session_factory
        self._scheduler = scheduler or BackgroundScheduler()
        self.clock = clock or system_clock

    @property
    def scheduler(self) -> BackgroundScheduler:
        return self._scheduler

    def register_jobs(self) -> None:
        """注册两个清理任务（重复注册会替换）"""
        self._scheduler.add_job(
            self.run_no_show_sweep,
            trigger=CronTrigger(hour=settings.NO_SHOW_SWEEP_HOUR, minute=0),
            id=NO_SHOW_JOB_ID,
            replace_existing=True,
        )
        self._scheduler.add_job(
            self.run_auto_cancel_sweep,
            trigger=IntervalTrigger(minutes=settings.AUTO_CANCEL_SWEEP_MINUTES),
            id=AUTO_CANCEL_JOB_ID,
            replace_existing=True,
        )
        logger.info(f"Sweep jobs registered: {NO_SHOW_JOB_ID}, {AUTO_CANCEL_JOB_ID}")

    def start(self) -> None:
        """启动调度器"""
        self.register_jobs()
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Sweep scheduler started")

    def shutdown(self) -> None:
        """关闭调度器"""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Sweep scheduler shut down")

    def run_no_show_sweep(self) -> Optional[Dict]:
        """执行一次 no-show 清理（所有酒店，目标日期为今天）"""
        db = self._session_factory()
        try:
            result = SweepService(db, clock=self.clock).cancel_no_shows()
            if not result.success:
                logger.warning(f"No-show sweep failed: {result.message}")
                return None
            return result.data.model_dump()
        finally:
            db.close()

    def run_auto_cancel_sweep(self) -> List[int]:
        """对每个启用的酒店执行自动标记，返回被标记为 Missing 的预订 id"""
        db = self._session_factory()
        marked: List[int] = []
        try:
            hotel_ids = [h.id for h in db.query(Hotel).filter(Hotel.is_active.is_(True)).all()]
            for hotel_id in hotel_ids:
                result = SweepService(db, clock=self.clock).auto_cancel_bookings(hotel_id)
                if result.success:
                    marked.extend(result.data)
                else:
                    logger.warning(f"Auto-cancel sweep failed for hotel {hotel_id}: {result.message}")
            return marked
        finally:
            db.close()

    def get_jobs(self) -> List[Dict]:
        """已注册的任务"""
        return [
            {
                "id": job.id,
                "trigger": str(job.trigger),
                "next_run_time": job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
            }
            for job in self._scheduler.get_jobs()
        ]
