"""FastAPI dependencies for database and outbound HTTP access."""

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from brandlens_api.config import settings
from evidence_service.archive.wayback import WaybackSnapshotter
from evidence_service.discovery.outlet import OutletDiscoveryResolver
from evidence_service.fetch.http_client import PoliteHttpClient

engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for request handling."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_discovery() -> Generator[OutletDiscoveryResolver, None, None]:
    """Yield an outlet discovery resolver backed by a request-scoped HTTP client."""
    with PoliteHttpClient() as http:
        yield OutletDiscoveryResolver(http)


def get_archiver() -> Generator[WaybackSnapshotter, None, None]:
    with WaybackSnapshotter() as archiver:
        yield archiver


DbSession = Annotated[Session, Depends(get_db)]
Discovery = Annotated[OutletDiscoveryResolver, Depends(get_discovery)]
Archiver = Annotated[WaybackSnapshotter, Depends(get_archiver)]
