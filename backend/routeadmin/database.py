"""Database models and setup for the route administration system."""

import hashlib
import hmac
import logging
import os
import secrets
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from routeadmin.errors import PersistenceError, RouteNotFoundError
from routeadmin.models import RouteDocument, RouteSummary

logger = logging.getLogger(__name__)

Base = declarative_base()

PBKDF2_ITERATIONS = 200_000


class RouteDB(Base):
    """One row per route; stops and fares are stored as JSON documents."""
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String, nullable=False)
    name = Column(String, nullable=False)
    bus_types = Column(JSON, nullable=False, default=list)
    locations = Column(JSON, nullable=False, default=dict)
    fare_matrix = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def to_document(self) -> RouteDocument:
        return RouteDocument(
            number=self.number,
            name=self.name,
            bus_types=self.bus_types,
            locations=self.locations or {},
            fare_matrix=self.fare_matrix or {},
        )

    def apply_document(self, document: RouteDocument) -> None:
        data = document.model_dump(by_alias=True, mode="json")
        self.number = data["number"]
        self.name = data["name"]
        self.bus_types = data["busTypes"]
        self.locations = data["locations"]
        self.fare_matrix = data["fareMatrix"]

    def __repr__(self):
        return f"<Route(id={self.id}, number={self.number}, name={self.name})>"


class AdminDB(Base):
    """Admin account allowed to edit routes."""
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    @staticmethod
    def hash_password(password: str, salt: Optional[str] = None) -> str:
        salt = salt or secrets.token_hex(16)
        digest = hashlib.pbkdf2_hmac(
            "sha256", password.encode(), bytes.fromhex(salt), PBKDF2_ITERATIONS
        )
        return f"{salt}${digest.hex()}"

    def verify_password(self, password: str) -> bool:
        salt, _, expected = self.password_hash.partition("$")
        candidate = self.hash_password(password, salt).partition("$")[2]
        return hmac.compare_digest(candidate, expected)

    def __repr__(self):
        return f"<Admin(id={self.id}, email={self.email})>"


class DatabaseManager:
    """Manager class for database operations."""

    def __init__(self, database_url: Optional[str] = None):
        """Initialize database connection."""
        self.database_url = database_url or os.getenv(
            "DATABASE_URL",
            "sqlite:///./route_admin.db"
        )

        # Create engine with appropriate settings for SQLite
        connect_args = {"check_same_thread": False} if "sqlite" in self.database_url else {}
        self.engine = create_engine(self.database_url, connect_args=connect_args)

        # Create session factory
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        # Create tables if they don't exist
        Base.metadata.create_all(bind=self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def load_route(self, route_id: int) -> Optional[RouteDocument]:
        """Retrieve a route document, or None if it does not exist."""
        session = self.get_session()
        try:
            route = session.get(RouteDB, route_id)
            return route.to_document() if route else None
        except SQLAlchemyError as e:
            logger.exception("Loading route %s failed", route_id)
            raise PersistenceError(f"Could not load route {route_id}") from e
        finally:
            session.close()

    def save_route(self, document: RouteDocument, route_id: Optional[int] = None) -> int:
        """
        Create or fully replace a route document in one transaction.

        Args:
            document: Route document to store
            route_id: Existing route to overwrite; a new row is created when None

        Returns:
            Id of the stored route

        Raises:
            RouteNotFoundError: route_id does not exist
            PersistenceError: the write failed and was rolled back
        """
        session = self.get_session()
        try:
            if route_id is None:
                route = RouteDB()
                session.add(route)
            else:
                route = session.get(RouteDB, route_id)
                if route is None:
                    raise RouteNotFoundError(route_id)

            route.apply_document(document)
            session.commit()
            return route.id
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Saving route %s failed", route_id)
            raise PersistenceError("Could not save route, previous version kept") from e
        finally:
            session.close()

    def list_routes(self) -> List[RouteSummary]:
        """Get a summary of every stored route ordered by route number."""
        session = self.get_session()
        try:
            routes = session.query(RouteDB).order_by(RouteDB.number, RouteDB.id).all()
            return [
                RouteSummary(
                    id=route.id,
                    number=route.number,
                    name=route.name,
                    bus_types=route.bus_types,
                    updated_at=route.updated_at,
                )
                for route in routes
            ]
        except SQLAlchemyError as e:
            logger.exception("Listing routes failed")
            raise PersistenceError("Could not list routes") from e
        finally:
            session.close()

    def delete_route(self, route_id: int) -> bool:
        """Delete a route. Returns False if it did not exist."""
        session = self.get_session()
        try:
            route = session.get(RouteDB, route_id)
            if route is None:
                return False
            session.delete(route)
            session.commit()
            logger.info("Deleted route %s", route_id)
            return True
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Deleting route %s failed", route_id)
            raise PersistenceError(f"Could not delete route {route_id}") from e
        finally:
            session.close()

    def count_routes(self) -> int:
        session = self.get_session()
        try:
            return session.query(RouteDB).count()
        finally:
            session.close()

    def create_admin(self, email: str, password: str) -> AdminDB:
        """Create an admin account; email is stored lower-cased."""
        session = self.get_session()
        try:
            admin = AdminDB(
                email=email.strip().lower(),
                password_hash=AdminDB.hash_password(password),
            )
            session.add(admin)
            session.commit()
            session.refresh(admin)
            session.expunge(admin)
            return admin
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not create admin {email}") from e
        finally:
            session.close()

    def get_admin_by_email(self, email: str) -> Optional[AdminDB]:
        session = self.get_session()
        try:
            admin = session.query(AdminDB).filter_by(email=email.strip().lower()).first()
            if admin is not None:
                session.expunge(admin)
            return admin
        finally:
            session.close()

    def get_admin(self, admin_id: int) -> Optional[AdminDB]:
        session = self.get_session()
        try:
            admin = session.get(AdminDB, admin_id)
            if admin is not None:
                session.expunge(admin)
            return admin
        finally:
            session.close()


# Singleton instance
_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Get singleton database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager
