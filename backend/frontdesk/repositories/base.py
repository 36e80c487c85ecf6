"""
通用仓储 - 按实体类型参数化的持久化访问
"""
from typing import Any, Generic, Optional, Type, TypeVar
from sqlalchemy.orm import Query, Session
from frontdesk.database import Base

ModelT = TypeVar("ModelT", bound=Base)


class Repository(Generic[ModelT]):
    """单个实体类型的仓储"""

    def __init__(self, db: Session, model: Type[ModelT]):
        self.db = db
        self.model = model

    def find(self, entity_id: Any) -> Optional[ModelT]:
        """按主键查找"""
        if entity_id is None:
            return None
        return self.db.get(self.model, entity_id)

    def query(self, *criteria) -> Query:
        """可组合的查询，criteria 为 SQLAlchemy 过滤条件"""
        q = self.db.query(self.model)
        if criteria:
            q = q.filter(*criteria)
        return q

    def add(self, entity: ModelT) -> ModelT:
        """新增并 flush，以便立即拿到主键"""
        self.db.add(entity)
        self.db.flush()
        return entity

    def update(self, entity: ModelT, **changes) -> ModelT:
        """按字段更新"""
        for key, value in changes.items():
            setattr(entity, key, value)
        self.db.flush()
        return entity

    def remove(self, entity: ModelT) -> None:
        self.db.delete(entity)
        self.db.flush()

    def save_changes(self) -> None:
        self.db.flush()
