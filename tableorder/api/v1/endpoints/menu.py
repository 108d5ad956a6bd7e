# tableorder/api/v1/endpoints/menu.py
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tableorder import crud, schemas
from tableorder.api import deps
from tableorder.database import get_db

router = APIRouter()


@router.get("/", response_model=List[schemas.MenuItem])
def read_available_menu(db: Session = Depends(get_db), category: Optional[str] = None) -> Any:
    """
    Menu shown to guests: available items only, by category and name.
    """
    return crud.menu_item.get_multi(db, available_only=True, category=category)


@router.get("/all", response_model=List[schemas.MenuItem])
def read_full_menu(db: Session = Depends(get_db), category: Optional[str] = None) -> Any:
    """
    Every menu item, available or not.
    """
    return crud.menu_item.get_multi(db, available_only=False, category=category)


@router.post("/", response_model=schemas.MenuItem, status_code=status.HTTP_201_CREATED)
def create_menu_item(
    *,
    db: Session = Depends(get_db),
    item_in: schemas.MenuItemCreate,
    current_admin: schemas.TokenData = Depends(deps.get_current_admin),
) -> Any:
    return crud.menu_item.create(db=db, obj_in=item_in)


@router.get("/{item_id}", response_model=schemas.MenuItem)
def read_menu_item(item_id: str, db: Session = Depends(get_db)) -> Any:
    item = crud.menu_item.get(db, id=item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Menu item not found")
    return item


@router.put("/{item_id}", response_model=schemas.MenuItem)
def update_menu_item(
    *,
    db: Session = Depends(get_db),
    item_id: str,
    item_in: schemas.MenuItemUpdate,
    current_admin: schemas.TokenData = Depends(deps.get_current_admin),
) -> Any:
    """
    Updates a menu item. Toggling availability leaves already placed items untouched.
    """
    item = crud.menu_item.get(db, id=item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Menu item not found")
    return crud.menu_item.update(db=db, db_obj=item, obj_in=item_in)


@router.delete("/{item_id}", response_model=schemas.MenuItem)
def delete_menu_item(
    *,
    db: Session = Depends(get_db),
    item_id: str,
    current_admin: schemas.TokenData = Depends(deps.get_current_admin),
) -> Any:
    item = crud.menu_item.get(db, id=item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Menu item not found")
    removed = schemas.MenuItem.model_validate(item)
    crud.menu_item.remove(db=db, id=item_id)
    return removed
