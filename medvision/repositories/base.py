from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from ..core.database import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Thin persistence contract shared by every store.

    Repositories only add and flush; committing is the caller's job so that a
    service can group several writes into one transaction.
    """

    model: Type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def get(self, entity_id: str) -> Optional[ModelT]:
        return self.db.get(self.model, entity_id)

    def create(self, **fields: Any) -> ModelT:
        entity = self.model(**fields)
        self.db.add(entity)
        self.db.flush()
        return entity

    def update(self, entity: ModelT, changes: Dict[str, Any]) -> ModelT:
        for field, value in changes.items():
            setattr(entity, field, value)
        self.db.flush()
        return entity

    def delete(self, entity: ModelT) -> None:
        self.db.delete(entity)
        self.db.flush()

    def list(self, *criteria, page: int = 1, limit: int = 10, order_by=None) -> List[ModelT]:
        query = self.db.query(self.model)
        if criteria:
            query = query.filter(*criteria)
        query = query.order_by(order_by if order_by is not None else self.model.created_at.desc())
        return query.offset((page - 1) * limit).limit(limit).all()
