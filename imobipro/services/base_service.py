"""Session handling shared by the CRM services."""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from imobipro.core.exceptions import ConflictError, DatabaseError, ImobiproException
from imobipro.database import db as database

logger = logging.getLogger(__name__)


class BaseService:
    """Wraps a session; services built without one open and own their own."""

    def __init__(self, db: Session | None = None) -> None:
        self._owns_session = db is None
        self.db = db if db is not None else database.SessionLocal()

    def commit(self) -> None:
        """Commit, translating driver errors into domain errors.

        Unique-key violations (duplicate contact e-mail, property code, user
        e-mail) become ConflictError; anything else becomes DatabaseError.
        Domain errors raised by flush listeners (ImmutableRecordError) are
        re-raised unchanged after the rollback.
        The session is rolled back either way.
        """
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                "db.commit.integrity_error",
                extra={"event": "db.commit.integrity_error", "reason": str(exc.orig)},
            )
            raise ConflictError("Write conflicts with an existing record.") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("db.commit.failed", extra={"event": "db.commit.failed"})
            raise DatabaseError("Could not persist changes.") from exc
        except ImobiproException:
            self.db.rollback()
            raise

    def close(self) -> None:
        if self._owns_session:
            self.db.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.db.rollback()
        self.close()
