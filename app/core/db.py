"""DB connection and helpers for the APNexus rules service."""

from typing import Any

from sqlalchemy import Column, DateTime, Float, Integer, String, Table, Text, create_engine, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


class Vehicle(Base):
    """A fleet vehicle, the reference set for fuel transaction matching."""

    __tablename__ = "vehicles"
    id = Column(Integer, primary_key=True)
    asset_id = Column(String, unique=True, index=True, nullable=False)
    vehicle_name = Column(String, default="")
    make = Column(String, default="")
    model = Column(String, default="")
    year = Column(Integer, nullable=True)
    current_odometer = Column(Integer, default=0)
    fuel_type = Column(String, nullable=True)


class FuelTransactionRecord(Base):
    """An imported fuel purchase, used as per-vehicle history."""

    __tablename__ = "fuel_transactions"
    id = Column(Integer, primary_key=True)
    source_transaction_id = Column(String, unique=True, index=True, nullable=False)
    transaction_date = Column(DateTime, nullable=True)
    vehicle_id = Column(String, index=True, nullable=True)
    employee_name = Column(String, default="")
    gallons = Column(Float, default=0.0)
    total_cost = Column(Float, default=0.0)
    odometer = Column(Integer, nullable=True)
    status = Column(String, default="new")
    flag_reason = Column(Text, nullable=True)


jobs_table = Table(
    "jobs",
    Base.metadata,
    Column("id", String, primary_key=True),
    Column("status", String, nullable=False),
    Column("created_at", String, nullable=False),
    Column("completed_at", String, nullable=True),
    Column("input_path", String, nullable=False),
    Column("output_path", String, nullable=False),
    Column("error", Text, nullable=True),
)


def get_engine(url: str | None = None) -> Engine:
    """Create a SQLAlchemy engine using the configured database URL."""
    if url is None:
        from app.core.settings import get_settings

        url = get_settings().database_url
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = get_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Create the vehicles, fuel_transactions and jobs tables if missing."""
    Base.metadata.create_all(bind or engine)


class DBHelper:
    """Helper class for job bookkeeping using SQLAlchemy Core."""

    def __init__(self, session: Session) -> None:
        """Initialize the DBHelper with a SQLAlchemy session."""
        self.session = session

    def create_job(self, job_id: str, created_at: str, input_path: str, output_path: str) -> None:
        """Insert a pending job row."""
        stmt = insert(jobs_table).values(
            id=job_id, status="pending", created_at=created_at, input_path=input_path, output_path=output_path
        )
        self.session.execute(stmt)
        self.session.commit()

    def set_job_status(self, job_id: str, status: str, **values: Any) -> None:
        """Update the status (and optional completion fields) of a job."""
        stmt = update(jobs_table).where(jobs_table.c.id == job_id).values(status=status, **values)
        self.session.execute(stmt)
        self.session.commit()

    def get_job_status(self, job_id: str) -> dict[str, Any] | None:
        """Retrieve the status and metadata for a job by its ID using SQLAlchemy."""
        stmt = select(
            jobs_table.c.status,
            jobs_table.c.created_at,
            jobs_table.c.completed_at,
            jobs_table.c.error,
        ).where(jobs_table.c.id == job_id)
        result = self.session.execute(stmt).first()
        if not result:
            return None
        return {
            "status": result.status,
            "created_at": result.created_at,
            "completed_at": result.completed_at,
            "error": result.error,
        }

    def get_job_output_path(self, job_id: str) -> str | None:
        """Retrieve the output file key for a completed job."""
        stmt = select(jobs_table.c.output_path, jobs_table.c.status).where(jobs_table.c.id == job_id)
        result = self.session.execute(stmt).first()
        if not result or result.status != "completed":
            return None
        return result.output_path

    def close(self) -> None:
        """Close the SQLAlchemy session."""
        self.session.close()
