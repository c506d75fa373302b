"""
SQLAlchemy-backed credential store.

One session per operation; each write commits or rolls back on its own.
Driver errors are mapped onto StoreWriteError / StoreReadError and never
carry secret values.

Usage:
    engine = create_engine(settings.database_url)
    store = SqlCredentialStore(sessionmaker(bind=engine))
    store.create_schema()
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from hipchat_addon.credentials.records import NO_GROUP, NO_ROOM, InstallRecord, TenantKey
from hipchat_addon.credentials.store import CredentialStore
from hipchat_addon.db_base import Base
from hipchat_addon.models.installation import Installation
from hipchat_addon.platform.errors import StoreReadError, StoreWriteError

logger = logging.getLogger(__name__)


class SqlCredentialStore(CredentialStore):
    """Credential store over the `installation` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def create_schema(self) -> None:
        """Create the installation table and its indexes if missing."""
        bind = self._session_factory.kw.get("bind")
        if bind is None:
            raise RuntimeError("session factory is not bound to an engine")
        Base.metadata.create_all(bind=bind, tables=[Installation.__table__])

    def save_credentials(self, record: InstallRecord) -> None:
        with self._session() as session:
            try:
                # merge() gives replace semantics on a re-install of the same oauth_id
                session.merge(Installation.from_record(record))
                session.commit()
            except IntegrityError as e:
                session.rollback()
                logger.warning(
                    "Installation violates tenant uniqueness",
                    extra={
                        "oauth_id": record.oauth_id,
                        "tenant_key": str(record.tenant_key),
                        "error_type": type(e).__name__,
                    },
                )
                raise StoreWriteError(
                    f"Tenant {record.tenant_key} is already installed"
                ) from e
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(
                    "Failed to save installation",
                    extra={"oauth_id": record.oauth_id, "error_type": type(e).__name__},
                )
                raise StoreWriteError() from e

        logger.info("Installation saved", extra=record.redacted())

    def delete_credentials(self, oauth_id: str) -> None:
        with self._session() as session:
            try:
                deleted = session.query(Installation).filter(
                    Installation.oauth_id == oauth_id,
                ).delete(synchronize_session=False)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(
                    "Failed to delete installation",
                    extra={"oauth_id": oauth_id, "error_type": type(e).__name__},
                )
                raise StoreWriteError("There was an error deleting these credentials") from e

        logger.info(
            "Installation deleted",
            extra={"oauth_id": oauth_id, "rows": deleted},
        )

    def get_credentials(self, tenant_key: TenantKey) -> Optional[InstallRecord]:
        with self._session() as session:
            try:
                row = session.execute(
                    select(Installation).where(
                        Installation.group_id == tenant_key.group_id,
                        Installation.room_id == tenant_key.room_id,
                    )
                ).scalar_one_or_none()
            except SQLAlchemyError as e:
                logger.error(
                    "Failed to load installation",
                    extra={"tenant_key": str(tenant_key), "error_type": type(e).__name__},
                )
                raise StoreReadError() from e
            return row.to_record() if row else None

    def get_group_id(self, room_id: int) -> int:
        # Room 0 marks group-scoped installs, not a room
        if room_id == NO_ROOM:
            return NO_GROUP
        logger.debug("Looking up group id", extra={"room_id": room_id})
        with self._session() as session:
            try:
                group_id = session.execute(
                    select(Installation.group_id).where(Installation.room_id == room_id)
                ).scalars().first()
            except SQLAlchemyError as e:
                logger.error(
                    "Failed to look up group id",
                    extra={"room_id": room_id, "error_type": type(e).__name__},
                )
                raise StoreReadError() from e
        return int(group_id) if group_id is not None else NO_GROUP

    def get_oauth_secret(self, oauth_id: str) -> Optional[str]:
        with self._session() as session:
            try:
                return session.execute(
                    select(Installation.oauth_secret).where(Installation.oauth_id == oauth_id)
                ).scalar_one_or_none()
            except SQLAlchemyError as e:
                logger.error(
                    "Failed to look up OAuth secret",
                    extra={"oauth_id": oauth_id, "error_type": type(e).__name__},
                )
                raise StoreReadError() from e

    def get_tenant_keys(self, oauth_id: str) -> list[TenantKey]:
        with self._session() as session:
            try:
                rows = session.execute(
                    select(Installation.group_id, Installation.room_id).where(
                        Installation.oauth_id == oauth_id
                    )
                ).all()
            except SQLAlchemyError as e:
                logger.error(
                    "Failed to list tenant keys",
                    extra={"oauth_id": oauth_id, "error_type": type(e).__name__},
                )
                raise StoreReadError() from e
        return [TenantKey(group_id=int(g), room_id=int(r)) for g, r in rows]
