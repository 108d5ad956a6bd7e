# tableorder/crud/crud_menu_item.py
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from tableorder.db.models.menu_item import MenuItem
from tableorder.schemas.menu_item import MenuItemCreate, MenuItemUpdate


class CRUDMenuItem:
    def get(self, db: Session, id: str) -> Optional[MenuItem]:
        return db.query(MenuItem).filter(MenuItem.id == id).first()

    def get_multi(
        self,
        db: Session,
        *,
        available_only: bool = False,
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 500,
    ) -> List[MenuItem]:
        query = db.query(MenuItem)
        if available_only:
            query = query.filter(MenuItem.is_available.is_(True))
        if category:
            query = query.filter(MenuItem.category == category)
        return query.order_by(MenuItem.category, MenuItem.name).offset(skip).limit(limit).all()

    def create(self, db: Session, *, obj_in: MenuItemCreate) -> MenuItem:
        db_obj = MenuItem(
            name=obj_in.name,
            category=obj_in.category,
            price=obj_in.price,
            description=obj_in.description,
            image_url=obj_in.image_url,
            is_available=obj_in.is_available if obj_in.is_available is not None else True,
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def update(
        self, db: Session, *, db_obj: MenuItem, obj_in: Union[MenuItemUpdate, Dict[str, Any]]
    ) -> MenuItem:
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        for field in update_data:
            if update_data[field] is None and field in ("name", "category", "price", "is_available"):
                continue
            if hasattr(db_obj, field):
                setattr(db_obj, field, update_data[field])

        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def remove(self, db: Session, *, id: str) -> Optional[MenuItem]:
        obj = self.get(db, id=id)
        if obj:
            db.delete(obj)
            db.commit()
        return obj


menu_item = CRUDMenuItem()
