"""Precheck that a MySQL database is reachable."""

from __future__ import annotations

import pymysql

from rainbondop.cluster import (
    Database,
    RainbondClusterCondition,
    RainbondClusterConditionType,
)
from rainbondop.meta import ConditionStatus, now
from rainbondop.precheck.base import PreChecker, fail_condition

_CONNECT_TIMEOUT = 10


class DatabasePrechecker(PreChecker):
    """Checks that the given database accepts connections."""

    def __init__(self, cond_type: RainbondClusterConditionType, db: Database) -> None:
        self.cond_type = cond_type
        self.db = db

    def check(self) -> RainbondClusterCondition:
        condition = RainbondClusterCondition(
            type=self.cond_type,
            status=ConditionStatus.TRUE,
            last_heartbeat_time=now(),
        )
        try:
            self._ping()
        except (pymysql.MySQLError, OSError) as err:
            return fail_condition(condition, "DatabaseFailed", str(err))
        return condition

    def _ping(self) -> None:
        db = self.db
        connection = pymysql.connect(
            host=db.host,
            port=db.port,
            user=db.username,
            password=db.password,
            database=db.name or None,
            connect_timeout=_CONNECT_TIMEOUT,
        )
        try:
            connection.ping(reconnect=False)
        finally:
            connection.close()