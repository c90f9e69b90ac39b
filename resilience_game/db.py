from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from resilience_game.load_secrets import database_backend

if database_backend == "postgres":
    from resilience_game.create_postgres_engine import engine
else:
    from resilience_game.create_sqlite_engine import engine

# One factory for the configured backend; SqlDocumentStore opens a session per call.
Session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
