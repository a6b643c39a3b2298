from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import sessionmaker, declarative_base
from shared.core.config import FACILITY_DATABASE_URL, settings

Base = declarative_base()

# JSONB on postgres, plain JSON on sqlite
JsonType = JSON().with_variant(JSONB(), "postgresql")

if FACILITY_DATABASE_URL.startswith("sqlite"):
    facility_engine = create_engine(
        FACILITY_DATABASE_URL,
        connect_args={"check_same_thread": False}
    )
else:
    facility_engine = create_engine(
        FACILITY_DATABASE_URL,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=settings.DB_POOL_SIZE,          # max idle connections
        max_overflow=settings.DB_MAX_OVERFLOW,    # max temporary extra connections
        pool_timeout=30       # wait time before failing
    )

FacilitySessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=facility_engine)


# Dependency
def get_facility_db():
    db = FacilitySessionLocal()
    try:
        yield db
    finally:
        db.close()
