from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import create_async_engine
from resilience_game.load_secrets import user, password, host, port, db_name, pool_size

# URL.create escapes special characters in the credentials
postgres_url = URL.create(
    "postgresql+asyncpg",
    username=user,
    password=password,
    host=host,
    port=int(port) if port else None,
    database=db_name,
)

engine = create_async_engine(postgres_url, pool_size=pool_size, max_overflow=pool_size, pool_pre_ping=True)
