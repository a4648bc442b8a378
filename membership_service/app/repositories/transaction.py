from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from pymongo.client_session import ClientSession
from pymongo.database import Database

from .interfaces import TransactionManagerInterface


class MongoTransactionManager(TransactionManagerInterface):
    """pymongo 세션 트랜잭션. with 블록이 예외 없이 끝나면 커밋, 예외면 abort 한다.

    트랜잭션은 replica set(또는 sharded cluster) 배포에서만 동작한다.
    """

    def __init__(self, database: Database) -> None:
        self._client = database.client

    @contextmanager
    def transaction(self) -> Iterator[ClientSession]:
        with self._client.start_session() as session:
            with session.start_transaction():
                yield session
