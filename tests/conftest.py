import os
from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from petcare.auth.session_store import pwd_context  # noqa: E402
from petcare.database import Base, create_schema, enforce_foreign_keys  # noqa: E402
from petcare.models.pet import Pet  # noqa: E402
from petcare.models.service import Service  # noqa: E402
from petcare.models.slot import Slot  # noqa: E402
from petcare.models.user import User  # noqa: E402

OWNER_EMAIL = 'owner@example.com'
OWNER_PASSWORD = 'secret-password'


@pytest.fixture
def db_engine():
    engine = enforce_foreign_keys(
        create_engine(
            'sqlite:///:memory:',
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
        )
    )
    create_schema(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def testing_session_local(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(testing_session_local):
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


def add_user(db, email: str, password: str = OWNER_PASSWORD, role: str | None = 'owner', name: str | None = None,
             pets: list[tuple[int, str]] = ()) -> User:
    user = User(email=email, hashed_password=pwd_context.hash(password), role=role, name=name)
    db.add(user)
    db.commit()
    for pet_id, pet_name in pets:
        db.add(Pet(id=pet_id, owner_id=user.id, name=pet_name))
    db.commit()
    db.refresh(user)
    return user


def add_service(db, service_id: int, description: str) -> Service:
    service = Service(id=service_id, description=description)
    db.add(service)
    db.commit()
    return service


def add_slot(db, slot_id: int, slot_date: date, start_time: time, is_available: bool = True) -> Slot:
    slot = Slot(id=slot_id, date=slot_date, start_time=start_time, is_available=is_available)
    db.add(slot)
    db.commit()
    return slot


@pytest.fixture
def owner(db) -> User:
    return add_user(db, OWNER_EMAIL, name='Ana', pets=[(1, 'Rex')])


@pytest.fixture
def booking_catalog(db, owner):
    add_service(db, 2, 'Grooming')
    add_slot(db, 5, date(2026, 3, 2), time(10, 0))
    return db
