# tableorder/crud/crud_user.py
from typing import Dict, List

from sqlalchemy.orm import Session

from tableorder.db.models.user import User


class CRUDUser:
    def create(self, db: Session, *, mobile_number: str, order_id: str) -> User:
        db_obj = User(mobile_number=mobile_number, order_id=order_id)
        db.add(db_obj)
        db.flush()
        return db_obj

    def get_by_order(self, db: Session, *, order_id: str) -> List[User]:
        return db.query(User).filter(User.order_id == order_id).order_by(User.created_at).all()

    def mobile_numbers_for_orders(self, db: Session, *, order_ids: List[str]) -> Dict[str, str]:
        """First captured mobile number per order."""
        if not order_ids:
            return {}
        rows = (
            db.query(User.order_id, User.mobile_number)
            .filter(User.order_id.in_(order_ids))
            .order_by(User.created_at.desc())
            .all()
        )
        # Newest first, so the oldest number wins
        return {order_id: mobile for order_id, mobile in rows}


user = CRUDUser()
