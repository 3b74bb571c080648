from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from textil.core.config import settings


def _engine_options(url: str) -> dict:
    # SQLite (tests, local tooling) shares one connection across threads
    if url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
            "echo": settings.DEBUG and settings.ENVIRONMENT != "test",
        }
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "echo": settings.DEBUG,
    }


sync_engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)

Base = declarative_base()


def get_db():
    """Genera una sesión de base de datos por request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_tenant_query(session, model, tenant_id):
    """Helper function to create tenant-scoped queries"""
    if hasattr(model, 'tenant_id'):
        return session.query(model).filter(model.tenant_id == tenant_id)
    return session.query(model)
