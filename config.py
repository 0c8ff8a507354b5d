"""
Centralized Configuration for the FieldCrew recurring jobs service
Manages environment-specific settings, database location and scheduling limits.
"""
import os


def _normalize_database_url(url):
    """Render/Heroku hand out postgres:// URLs; SQLAlchemy wants postgresql://"""
    if url and url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


class Config:
    """Base configuration with defaults"""

    # Flask Settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or os.urandom(32).hex()
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # JSON payloads only

    # CORS Settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
    CORS_METHODS = ['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS']
    CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization', 'X-Requested-With']

    # Database Settings
    DATABASE_URL = _normalize_database_url(
        os.environ.get('DATABASE_URL', 'postgresql://localhost/fieldcrew')
    )
    AUTO_CREATE_TABLES = os.environ.get('AUTO_CREATE_TABLES', 'false').lower() == 'true'
    SQLALCHEMY_ECHO = False

    # Recurring job generation
    DEFAULT_HORIZON_DAYS = int(os.environ.get('DEFAULT_HORIZON_DAYS', '60'))
    MAX_HORIZON_DAYS = int(os.environ.get('MAX_HORIZON_DAYS', '730'))
    MAX_GENERATED_OCCURRENCES = int(os.environ.get('MAX_GENERATED_OCCURRENCES', '180'))
    # JobCreator instance used for conversions; None means DatabaseJobCreator
    JOB_CREATOR = None

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_FILE = os.environ.get('LOG_FILE', 'app.log')


class DevelopmentConfig(Config):
    """Development-specific configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'
    # Allow all CORS in development
    CORS_ORIGINS = ['*']
    AUTO_CREATE_TABLES = True


class ProductionConfig(Config):
    """Production-specific configuration"""
    DEBUG = False
    TESTING = False
    # Strict CORS in production
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'https://fieldcrew.onrender.com').split(',')
    # Force HTTPS
    PREFERRED_URL_SCHEME = 'https'
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class TestingConfig(Config):
    """Testing-specific configuration"""
    DEBUG = True
    TESTING = True
    DATABASE_URL = os.environ.get('TEST_DATABASE_URL', 'sqlite:///test_fieldcrew.db')
    AUTO_CREATE_TABLES = True
    LOG_LEVEL = 'WARNING'


# Configuration selector
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_config():
    """Get configuration based on FLASK_ENV environment variable"""
    env = os.environ.get('FLASK_ENV', 'development')
    return config_by_name.get(env, DevelopmentConfig)
