from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from spendguard.config import DatabaseConfig

# If DATABASE_URL is provided directly, use it; otherwise construct from components
DATABASE_URL = DatabaseConfig().url

# create_engine is lazy, no connection is opened until the first session is used
engine = create_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
