"""Application context - settings, the optional database, and service wiring.

Built once per application by create_app() and stored on app.state. In
database mode every request gets its own Session and SQL-backed stores; in
mock mode all requests share one in-memory dataset.
"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from saas_control.config import Settings
from saas_control.core.database import create_db_engine, create_session_factory
from saas_control.repositories.memory_store import InMemoryDecisionStore, InMemoryDirectoryStore
from saas_control.repositories.mock_data import MockDataset, build_mock_dataset
from saas_control.repositories.sql_store import SqlAuditStore, SqlDecisionStore, SqlDirectoryStore
from saas_control.services.access_review_service import AccessReviewService
from saas_control.services.audit_service import AuditService
from saas_control.services.auth_service import AuthService
from saas_control.services.export_service import ExportService
from saas_control.services.rate_limiter import InMemoryRateLimiter

logger = logging.getLogger(__name__)


class AppContext:
    """Per-application wiring of stores and services"""

    def __init__(
        self,
        settings: Settings,
        engine: Optional[Engine] = None,
        session_factory: Optional[sessionmaker] = None,
        dataset: Optional[MockDataset] = None,
    ):
        self.settings = settings
        self.engine = engine
        self.session_factory = session_factory
        self.rate_limiter = InMemoryRateLimiter()

        if session_factory is None:
            self.dataset = dataset if dataset is not None else build_mock_dataset()
            self._memory_decisions = InMemoryDecisionStore(self.dataset)
            self._memory_directory = InMemoryDirectoryStore(self.dataset)
        else:
            self.dataset = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        if not settings.use_database:
            logger.warning("DATABASE_URL is not set - using in-memory mock data, changes are not persisted")
            return cls(settings)

        engine = create_db_engine(settings)
        return cls(settings, engine=engine, session_factory=create_session_factory(engine))

    @property
    def data_mode(self) -> str:
        return "database" if self.session_factory is not None else "mock"

    def open_session(self) -> Optional[Session]:
        """New database session, or None in mock mode"""
        if self.session_factory is None:
            return None
        return self.session_factory()

    def decision_store(self, db: Optional[Session]):
        return SqlDecisionStore(db) if db is not None else self._memory_decisions

    def directory_store(self, db: Optional[Session]):
        return SqlDirectoryStore(db) if db is not None else self._memory_directory

    def audit_service(self, db: Optional[Session]) -> AuditService:
        # Mock mode has no audit log
        return AuditService(SqlAuditStore(db) if db is not None else None)

    def access_review_service(self, db: Optional[Session]) -> AccessReviewService:
        return AccessReviewService(self.decision_store(db), self.directory_store(db), self.audit_service(db))

    def export_service(self, db: Optional[Session]) -> ExportService:
        return ExportService(
            self.access_review_service(db),
            self.directory_store(db),
            self.audit_service(db),
            max_rows=self.settings.EXPORT_MAX_ROWS,
        )

    def auth_service(self, db: Optional[Session]) -> AuthService:
        return AuthService(self.settings, self.directory_store(db))

    def dispose(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
