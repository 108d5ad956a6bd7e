# tableorder/crud/crud_table.py
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import update
from sqlalchemy.orm import Session

from tableorder.core.exceptions import ConflictError
from tableorder.db.models.table import DiningTable
from tableorder.schemas.table import TableCreate, TableUpdate


class CRUDTable:
    def get(self, db: Session, id: str) -> Optional[DiningTable]:
        return db.query(DiningTable).filter(DiningTable.id == id).first()

    def get_by_number(self, db: Session, *, table_number: str) -> Optional[DiningTable]:
        return db.query(DiningTable).filter(DiningTable.table_number == table_number).first()

    def get_multi(self, db: Session, *, skip: int = 0, limit: int = 100) -> List[DiningTable]:
        return db.query(DiningTable).order_by(DiningTable.table_number).offset(skip).limit(limit).all()

    def get_all(self, db: Session) -> List[DiningTable]:
        return db.query(DiningTable).order_by(DiningTable.table_number).all()

    def create(self, db: Session, *, obj_in: TableCreate) -> DiningTable:
        if self.get_by_number(db, table_number=obj_in.table_number):
            raise ConflictError(f"Table with number \"{obj_in.table_number}\" already exists.")

        db_obj = DiningTable(
            table_number=obj_in.table_number,
            floor=obj_in.floor or "Ground Floor",
            seating_capacity=obj_in.seating_capacity or 4,
            locked=False,
            unique_code=None,
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def update(
        self, db: Session, *, db_obj: DiningTable, obj_in: Union[TableUpdate, Dict[str, Any]]
    ) -> DiningTable:
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        # Lock state belongs to the order lifecycle
        update_data.pop("locked", None)
        update_data.pop("unique_code", None)

        new_number = update_data.get("table_number")
        if new_number and new_number != db_obj.table_number:
            existing = self.get_by_number(db, table_number=new_number)
            if existing and existing.id != db_obj.id:
                raise ConflictError(f"Another table with number \"{new_number}\" already exists.")

        for field in update_data:
            if update_data[field] is not None and hasattr(db_obj, field):
                setattr(db_obj, field, update_data[field])

        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def remove(self, db: Session, *, id: str) -> Optional[DiningTable]:
        obj = self.get(db, id=id)
        if obj:
            # Orders (and their items) go with the table through ON DELETE CASCADE
            db.delete(obj)
            db.commit()
        return obj

    # Lifecycle helpers: they only flush, the order engine owns the transaction

    def lock(self, db: Session, *, table_id: str, code: str) -> bool:
        """
        Claims the table for a new session in a single conditional statement.
        Returns False when another session already holds the lock.
        """
        db.flush()
        result = db.execute(
            update(DiningTable)
            .where(DiningTable.id == table_id, DiningTable.locked.is_(False))
            .values(locked=True, unique_code=code)
            .execution_options(synchronize_session=False)
        )
        db.expire_all()
        return result.rowcount == 1

    def unlock(self, db: Session, *, table_id: str) -> None:
        db.flush()
        db.execute(
            update(DiningTable)
            .where(DiningTable.id == table_id)
            .values(locked=False, unique_code=None)
            .execution_options(synchronize_session=False)
        )
        db.expire_all()

    def release(self, db: Session, *, table_id: str, code: str) -> bool:
        """
        Unlocks the table only while it still holds `code`.
        Returns False when another session already replaced that lock.
        """
        db.flush()
        result = db.execute(
            update(DiningTable)
            .where(DiningTable.id == table_id, DiningTable.unique_code == code)
            .values(locked=False, unique_code=None)
            .execution_options(synchronize_session=False)
        )
        db.expire_all()
        return result.rowcount == 1

    def force_lock(self, db: Session, *, table_id: str, code: str) -> None:
        """Unconditional lock, used by the repair sweep."""
        db.flush()
        db.execute(
            update(DiningTable)
            .where(DiningTable.id == table_id)
            .values(locked=True, unique_code=code)
            .execution_options(synchronize_session=False)
        )
        db.expire_all()


table = CRUDTable()
