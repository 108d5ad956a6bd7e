# tableorder/api/v1/endpoints/tables.py
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tableorder import crud, schemas
from tableorder.api import deps
from tableorder.database import get_db
from tableorder.services.order_service import OrderService

router = APIRouter()


@router.get("/", response_model=List[schemas.Table])
def read_tables(
    db: Session = Depends(get_db),
    skip: int = 0,
    limit: int = 100,
) -> Any:
    """
    Lists tables ordered by number.
    """
    return crud.table.get_multi(db, skip=skip, limit=limit)


@router.post("/", response_model=schemas.Table, status_code=status.HTTP_201_CREATED)
def create_table(
    *,
    db: Session = Depends(get_db),
    table_in: schemas.TableCreate,
    current_admin: schemas.TokenData = Depends(deps.get_current_admin),
) -> Any:
    """
    Creates a table. New tables start unlocked.
    """
    return crud.table.create(db=db, obj_in=table_in)


@router.post("/reconcile", response_model=schemas.ReconcileResult)
def reconcile_tables(
    service: OrderService = Depends(deps.get_order_service),
    current_admin: schemas.TokenData = Depends(deps.get_current_admin),
) -> Any:
    """
    Re-derives every table's lock from its orders: locked exactly while a non-Served order exists.
    """
    return {"repaired": service.reconcile_table_locks()}


@router.get("/number/{table_number}", response_model=schemas.Table)
def read_table_by_number(table_number: str, db: Session = Depends(get_db)) -> Any:
    table = crud.table.get_by_number(db, table_number=table_number)
    if not table:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Table not found")
    return table


@router.get("/{table_id}", response_model=schemas.Table)
def read_table(table_id: str, db: Session = Depends(get_db)) -> Any:
    table = crud.table.get(db, id=table_id)
    if not table:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Table not found")
    return table


@router.put("/{table_id}", response_model=schemas.Table)
def update_table(
    *,
    db: Session = Depends(get_db),
    table_id: str,
    table_in: schemas.TableUpdate,
    current_admin: schemas.TokenData = Depends(deps.get_current_admin),
) -> Any:
    """
    Updates a table's number, floor or capacity. Lock state is not editable here.
    """
    table = crud.table.get(db, id=table_id)
    if not table:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Table not found")
    return crud.table.update(db=db, db_obj=table, obj_in=table_in)


@router.delete("/{table_id}", response_model=schemas.Table)
def delete_table(
    *,
    db: Session = Depends(get_db),
    table_id: str,
    current_admin: schemas.TokenData = Depends(deps.get_current_admin),
) -> Any:
    """
    Deletes a table together with its orders.
    """
    table = crud.table.get(db, id=table_id)
    if not table:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Table not found")
    removed = schemas.Table.model_validate(table)
    crud.table.remove(db=db, id=table_id)
    return removed
