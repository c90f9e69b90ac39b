import os
from dotenv import load_dotenv

load_dotenv()

user = os.getenv("DB_USER")
password = os.getenv("DB_PASSWORD")
host = os.getenv("DB_HOST")
port = os.getenv("DB_PORT")
db_name = os.getenv("DB_NAME")
pool_size = int(os.getenv("DB_POOL_SIZE", "20"))

# "sqlite" (default) or "postgres"
database_backend = os.getenv("DATABASE_BACKEND", "sqlite")
sqlite_path = os.getenv("SQLITE_PATH")
log_level = os.getenv("LOG_LEVEL", "INFO")
max_active_sessions = int(os.getenv("MAX_ACTIVE_SESSIONS", "3"))
session_retention_days = int(os.getenv("SESSION_RETENTION_DAYS", "30"))

if __name__ == "__main__":
    print(user, host, port, db_name, database_backend, sqlite_path)
