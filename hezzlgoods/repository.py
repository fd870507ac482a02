"""Relational storage of goods records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterator, Mapping

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    false,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from hezzlgoods.errors import (
    GoodsNotFoundError,
    InternalServerError,
    ProjectNotFoundError,
)
from hezzlgoods.models import Goods

_FOREIGN_KEY_VIOLATION = "23503"


def _now() -> datetime:
    return datetime.now(timezone.utc)


_metadata = MetaData()

_projects = Table(
    "projects",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False, default=""),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        default=_now,
        server_default=func.now(),
    ),
)

_goods = Table(
    "goods",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("project_id", Integer, ForeignKey("projects.id"), nullable=False, index=True),
    Column("name", String, nullable=False),
    Column("description", String, nullable=True),
    Column("priority", Integer, nullable=False, default=0),
    Column("removed", Boolean, nullable=False, default=False),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        default=_now,
        server_default=func.now(),
    ),
)

_COLUMNS = (
    _goods.c.id,
    _goods.c.project_id,
    _goods.c.name,
    func.coalesce(_goods.c.description, "").label("description"),
    _goods.c.priority,
    _goods.c.removed,
    _goods.c.created_at,
)


def create_schema(engine: Engine) -> None:
    """Create the projects and goods tables when they do not exist yet."""
    _metadata.create_all(engine)


def _to_goods(row: Row) -> Goods:
    created = row.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return Goods(
        id=row.id,
        project_id=row.project_id,
        name=row.name,
        description=row.description,
        priority=row.priority,
        removed=bool(row.removed),
        created_at=created,
    )


def _is_foreign_key_violation(exc: IntegrityError) -> bool:
    original = exc.orig
    code = getattr(original, "pgcode", None) or getattr(original, "sqlstate", None)
    if code is not None:
        return code == _FOREIGN_KEY_VIOLATION
    return "FOREIGN KEY" in str(original).upper()


class GoodsRepository:
    """Reads and writes goods records through a SQLAlchemy engine."""

    def __init__(self, engine: Engine, logger: logging.Logger | None = None) -> None:
        self._engine = engine
        self._logger = logger or logging.getLogger(__name__)

    def create_goods(self, project_id: int, name: str) -> int:
        """Insert a record at the lowest priority and return its id."""
        try:
            with self._engine.begin() as conn:
                priority = conn.execute(
                    select(func.coalesce(func.max(_goods.c.priority), 0) + 1)
                ).scalar_one()
                result = conn.execute(
                    insert(_goods).values(project_id=project_id, name=name, priority=priority)
                )
                return int(result.inserted_primary_key[0])
        except IntegrityError as exc:
            if _is_foreign_key_violation(exc):
                raise ProjectNotFoundError() from exc
            self._log_failure("Failed to create goods", "create_goods", exc, project_id=project_id, name=name)
            raise InternalServerError() from exc
        except SQLAlchemyError as exc:
            self._log_failure("Failed to create goods", "create_goods", exc, project_id=project_id, name=name)
            raise InternalServerError() from exc

    def get_good(self, id: int) -> Goods:
        """Return one record by id; any failure, a missing row included, is internal."""
        try:
            with self._engine.connect() as conn:
                row = conn.execute(select(*_COLUMNS).where(_goods.c.id == id)).first()
        except SQLAlchemyError as exc:
            self._log_failure("Failed to get a good", "get_good", exc, id=id)
            raise InternalServerError() from exc
        if row is None:
            self._log_failure("Failed to get a good", "get_good", None, id=id)
            raise InternalServerError()
        return _to_goods(row)

    def get_goods_sort_priority(self) -> list[Goods]:
        """Return every record ordered by priority; raise GoodsNotFoundError when none."""
        return self._all_by_priority("get_goods_sort_priority")

    def get_goods_sort_id(self) -> list[Goods]:
        """Return every record for the listing cache, in the same order as by priority."""
        return self._all_by_priority("get_goods_sort_id")

    def get_goods_with_limit(self, limit: int, offset: int) -> list[Goods]:
        """Return one page of records ordered by id; the page may be empty."""
        query = select(*_COLUMNS).order_by(_goods.c.id).limit(limit).offset(offset)
        return list(self._fetch(query, "get_goods_with_limit"))

    def update_good(self, id: int, project_id: int, name: str, description: str) -> None:
        """Change name and description of a record that is not removed."""
        self._locked_update(
            "update_good", id, project_id, {"name": name, "description": description}
        )

    def remove_goods(self, id: int, project_id: int) -> None:
        """Mark a record that is not removed yet as removed."""
        self._locked_update("remove_goods", id, project_id, {"removed": True})

    def _all_by_priority(self, method: str) -> list[Goods]:
        result = list(self._fetch(select(*_COLUMNS).order_by(_goods.c.priority), method))
        if not result:
            raise GoodsNotFoundError()
        return result

    def _fetch(self, query: Any, method: str) -> Iterator[Goods]:
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as exc:
            self._log_failure("Failed to get goods", method, exc)
            raise InternalServerError() from exc
        return (_to_goods(row) for row in rows)

    def _locked_update(
        self, method: str, id: int, project_id: int, values: Mapping[str, Any]
    ) -> None:
        match = (_goods.c.id == id) & (_goods.c.project_id == project_id)
        try:
            with self._engine.begin() as conn:
                found = conn.execute(
                    select(_goods.c.id)
                    .where(match, _goods.c.removed == false())
                    .with_for_update()
                ).first()
                if found is None:
                    raise GoodsNotFoundError()
                conn.execute(update(_goods).where(match).values(**values))
        except SQLAlchemyError as exc:
            self._log_failure("Failed to update a good", method, exc, id=id, project_id=project_id)
            raise InternalServerError() from exc

    def _log_failure(
        self, message: str, method: str, exc: BaseException | None, **fields: Any
    ) -> None:
        details = " ".join(f"{key}={value!r}" for key, value in fields.items())
        self._logger.error("%s method=%s %s", message, method, details, exc_info=exc)