"""
Persistence layer built on SQLAlchemy for the groundwater crawler.

Two tables are defined:
    - stations: metadata about monitoring wells, keyed by the website id.
    - measurements: one reading per station and day.

The tables exist so `create_all` can provision an empty database; the
crawler itself writes through the named queries in `config/queries.sql`.
"""

from __future__ import annotations

import os
import re
from typing import Dict, Optional

from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator, TypeEngine

from .records import GeoPoint

Base = declarative_base()

SRID = 4326
_POINT_RE = re.compile(r"^(?:SRID=(\d+);)?POINT\s*\(\s*(\S+)\s+(\S+)\s*\)$", re.IGNORECASE)


class PointType(TypeDecorator):
    """
    Stores a `GeoPoint` as EWKT text, `SRID=4326;POINT(<lon> <lat>)`.

    PostGIS accepts this text for geometry input and SQLite keeps it as a
    plain string.
    """

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value: Optional[GeoPoint], dialect) -> Optional[str]:
        if value is None:
            return None
        return f"SRID={SRID};POINT({value.longitude!r} {value.latitude!r})"

    def process_result_value(self, value: Optional[str], dialect) -> Optional[GeoPoint]:
        if value is None:
            return None
        match = _POINT_RE.match(value.strip())
        if match is None:
            raise ValueError(f"unsupported point value: {value!r}")
        return GeoPoint(latitude=float(match.group(3)), longitude=float(match.group(2)))


class Station(Base):
    __tablename__ = "stations"

    website_id = Column(String(64), primary_key=True)
    public_id = Column(String(64), nullable=False)
    name = Column(String(256), nullable=True)
    operator = Column(String(256), nullable=True)
    location = Column(PointType(), nullable=True)


class Measurement(Base):
    __tablename__ = "measurements"

    id = Column(Integer, primary_key=True)
    station = Column(String(64), ForeignKey("stations.website_id"), nullable=False)
    date = Column(Date, nullable=False)
    classification = Column(Text, nullable=True)
    water_level_nhn = Column(Numeric(asdecimal=True), nullable=True)
    water_level_gok = Column(Numeric(asdecimal=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("station", "date", name="uq_measurement_station_date"),
    )


# Bind parameter types for the named queries. Values passed under these names
# go through the same conversion as the mapped columns above.
PARAM_TYPES: Dict[str, TypeEngine] = {
    "location": PointType(),
    "date": Date(),
    "water_level_nhn": Numeric(asdecimal=True),
    "water_level_gok": Numeric(asdecimal=True),
}


def get_engine(database: str) -> Engine:
    """
    Create an engine from a database URL or a bare SQLite file path.

    For SQLite files the parent directory is created when missing.
    """
    if "://" not in database:
        database = f"sqlite:///{database}"
    url = make_url(database)
    connect_args = {}
    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            parent = os.path.dirname(url.database)
            if parent:
                os.makedirs(parent, exist_ok=True)
    return create_engine(url, future=True, connect_args=connect_args)


def get_session_factory(engine: Engine, create_schema: bool = True) -> sessionmaker:
    if create_schema:
        Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False, class_=Session)


def ping(engine: Engine) -> None:
    """Run a trivial statement; raises if the database is unreachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
