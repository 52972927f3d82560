from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.config import Settings
from app.database import create_db_engine, create_session_factory
from app.tokens import TokenCodec


@dataclass
class AppContext:
    """Everything the request handlers share, built once at startup."""
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    tokens: TokenCodec


def build_context(settings: Settings) -> AppContext:
    engine = create_db_engine(settings.database_url, echo=settings.debug)
    return AppContext(
        settings=settings,
        engine=engine,
        session_factory=create_session_factory(engine),
        tokens=TokenCodec(settings.jwt_secret_key, settings.jwt_algorithm),
    )
