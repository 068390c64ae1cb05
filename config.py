import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SESSION_SECRET', 'dev-key-placeholder')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///tasks.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')
    # Used by the client side (client.TasksApi)
    API_BASE_URL = os.environ.get('API_BASE_URL', 'http://localhost:8080/api')
    API_TIMEOUT = float(os.environ.get('API_TIMEOUT', '10'))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    LOG_LEVEL = 'WARNING'
