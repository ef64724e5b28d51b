import os
from dotenv import load_dotenv, find_dotenv

# Load the .env at the repository root, if any
load_dotenv(find_dotenv(filename=".env", raise_error_if_not_found=False))


def _database_url() -> str:
    explicit = os.getenv('DATABASE_URL')
    if explicit:
        return explicit
    user = os.getenv('MYSQL_USER', 'root')
    password = os.getenv('MYSQL_PASSWORD', 'password')
    host = os.getenv('MYSQL_HOST', 'localhost')
    port = os.getenv('MYSQL_PORT', '3306')
    name = os.getenv('MYSQL_DB', 'cleanstreak')
    return f"mysql+pymysql://{user}:{password}@{host}:{port}/{name}?charset=utf8mb4"


class Config:
    # Flask
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret')
    # JWT
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'dev-jwt-secret-change-me-before-deploying')
    JWT_EXPIRES_DAYS = int(os.getenv('JWT_EXPIRES_DAYS', '30'))
    # Database
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQL_ECHO = os.getenv('SQL_ECHO', '0') == '1'
    # Calendar days are computed in this zone
    APP_TIMEZONE = os.getenv('APP_TIMEZONE', 'UTC')
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
