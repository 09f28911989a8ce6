from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
import os

from hr_warehouse.feeder.config import Config

DATABASE_URL = os.getenv("DATABASE_URL", Config.DEFAULT_DATABASE_URL)


def get_engine(url=None):
    return create_engine(url or DATABASE_URL)


def get_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)
