import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from the same directory as this file, regardless of where Flask is run from
load_dotenv(Path(__file__).parent / ".env")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-in-production")
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL", "sqlite:///flow_builder.db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    API_VERSION = "1.0.0"
    MAX_OPEN_FLOWS = int(os.getenv("MAX_OPEN_FLOWS", "500"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    LOG_LEVEL = "DEBUG"
