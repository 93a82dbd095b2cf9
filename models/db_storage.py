from sqlalchemy import create_engine, event, update
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from os import getenv
import logging

from models.base_model import Base
from models.user import User
from models.subscription import Subscription

logger = logging.getLogger(__name__)

# Map model names for easy querying
classes = {
    "User": User,
    "Subscription": Subscription,
}


class DBStorage:
    __engine = None
    __session = None

    def configure(self, database_url=None, echo=False):
        """Create the engine; falls back to DATABASE_URL from the environment"""
        url = database_url or getenv("DATABASE_URL", "sqlite:///channel-api.db")
        if self.__engine is not None:
            self.dispose()
        self.__engine = create_engine(url, echo=echo, pool_pre_ping=True)
        if self.__engine.url.get_backend_name() == "sqlite":
            # Enable SQLite foreign keys (needed for ON DELETE CASCADE)
            @event.listens_for(self.__engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

    def reload(self):
        """Create tables and start session"""
        if self.__engine is None:
            self.configure()
        Base.metadata.create_all(self.__engine)
        session_factory = sessionmaker(bind=self.__engine, expire_on_commit=False)
        self.__session = scoped_session(session_factory)

    def new(self, obj):
        """Add object to session"""
        self.__session.add(obj)

    def save(self):
        """Commit session"""
        try:
            self.__session.commit()
        except SQLAlchemyError:
            self.__session.rollback()
            raise

    def delete(self, obj=None):
        """Delete object if exists (hard delete)"""
        if obj:
            self.__session.delete(obj)

    def get(self, cls, id):
        """Fetch one object by class and ID"""
        if cls in classes.values() and id:
            return self.__session.get(cls, id)
        return None

    def update_where(self, cls, id, values, expected=None):
        """
        Single-statement conditional UPDATE on one row, committed immediately.

        `expected` maps column name -> value the row must still hold; the update
        only applies when all of them match (None matches SQL NULL).
        Returns the number of rows changed (0 or 1).
        """
        stmt = update(cls).where(cls.id == id)
        for column, value in (expected or {}).items():
            col = getattr(cls, column)
            stmt = stmt.where(col.is_(None) if value is None else col == value)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        try:
            result = self.__session.execute(stmt)
            self.__session.commit()
        except SQLAlchemyError:
            self.__session.rollback()
            raise
        # drop any cached copy so later reads see the committed value
        self.__session.expire_all()
        return result.rowcount

    def close(self):
        """Remove session (for API teardown)"""
        if self.__session is not None:
            self.__session.remove()

    def dispose(self):
        """Close the session registry and release pooled connections"""
        self.close()
        if self.__engine is not None:
            self.__engine.dispose()
            self.__engine = None

    # expose the SQLAlchemy session for advanced querying (joins, filters, etc.)
    def get_session(self):
        return self.__session
