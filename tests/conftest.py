from typing import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.local_cache import LocalCacheBase
from db.models import Base
from db.repositories import TransactionRepository, WalletRepository
from tests.helpers.time_utils import TickingClock

engine: Engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    LocalCacheBase.metadata.create_all(engine)
    yield
    LocalCacheBase.metadata.drop_all(engine)
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture(scope="function")
def wallet_repo(test_session: Session, clock: TickingClock) -> WalletRepository:
    return WalletRepository(test_session, clock=clock)


@pytest.fixture(scope="function")
def transaction_repo(test_session: Session) -> TransactionRepository:
    return TransactionRepository(test_session)
