"""Engine, Redis client and the request dependencies built on them"""

import redis
from sqlalchemy import create_engine
from sqlmodel import Session

from proficiency_exam.config import config

if not config["database_url"]:
    raise ValueError(
        "DATABASE_URL is not set, the exam service has nowhere to keep sessions"
    )

engine = create_engine(config["database_url"], echo=config["sql_echo"])

# Holds session tokens only; their TTLs are set by SessionTokenStore
redis_client = redis.from_url(
    config["redis_url"],
    decode_responses=True,
    max_connections=config["redis_max_connections"],
    socket_connect_timeout=config["redis_connect_timeout_seconds"],
    socket_keepalive=True,
    retry_on_timeout=True,
)


def get_db():
    """Request-scoped session, closed when the response is sent"""
    with Session(engine) as session:
        yield session


def get_redis():
    return redis_client
