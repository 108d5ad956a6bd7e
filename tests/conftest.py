from typing import Dict, Generator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from tableorder import crud
from tableorder.api import deps
from tableorder.core.config import settings
from tableorder.core.security import get_password_hash
from tableorder.database import build_engine, get_db
from tableorder.db import models  # noqa: F401
from tableorder.db.base_class import Base
from tableorder.db.init_db import init_db
from tableorder.db.models import DiningTable, MenuItem
from tableorder.main import app
from tableorder.schemas.menu_item import MenuItemCreate
from tableorder.services.notification_service import InMemoryOrderEventPublisher
from tableorder.services.order_service import OrderService

ADMIN_PASSWORD = "kitchen-secret"


@pytest.fixture
def engine(tmp_path):
    # File-backed so that concurrent sessions in threads see each other's commits
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def publisher() -> InMemoryOrderEventPublisher:
    return InMemoryOrderEventPublisher()


@pytest.fixture
def service(db, publisher) -> OrderService:
    return OrderService(db, publisher)


@pytest.fixture
def tables(db) -> List[DiningTable]:
    """Tables T01..T10 plus the sample menu."""
    init_db(db)
    return crud.table.get_all(db)


@pytest.fixture
def menu(db, tables) -> Dict[str, MenuItem]:
    items = {item.name: item for item in crud.menu_item.get_multi(db)}
    items["Lobster"] = crud.menu_item.create(
        db,
        obj_in=MenuItemCreate(name="Lobster", category="Mains", price="49.00", is_available=False),
    )
    return items


@pytest.fixture
def client(session_factory, publisher) -> Generator[TestClient, None, None]:
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_event_publisher] = lambda: publisher
    # Not entered as a context manager: the lifespan would touch the configured database
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client, monkeypatch) -> Dict[str, str]:
    monkeypatch.setattr(settings, "ADMIN_PASSWORD_HASH", get_password_hash(ADMIN_PASSWORD))
    response = client.post(
        f"{settings.API_V1_STR}/auth/token",
        data={"username": settings.ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
