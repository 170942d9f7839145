"""Flask application configuration."""
import os
from pathlib import Path

basedir = Path(__file__).parent.absolute()


def _get_database_url():
    """Get database URL, fixing postgres:// -> postgresql:// if needed."""
    url = os.environ.get('DATABASE_URL')
    if url and url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


def _split_names(value, default):
    """Parse a comma separated personnel list from the environment."""
    if not value:
        return list(default)
    return [name.strip() for name in value.split(',') if name.strip()]


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'concrete-lab-dev-key'

    # Local draft storage
    SQLALCHEMY_DATABASE_URI = _get_database_url() or \
        f"sqlite:///{basedir / 'instance' / 'concrete_lab.db'}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Draft persistence (single well-known key: one form session per process)
    DRAFT_STORAGE_KEY = os.environ.get('DRAFT_STORAGE_KEY', 'compresion-form-draft')
    DRAFT_DEBOUNCE_SECONDS = float(os.environ.get('DRAFT_DEBOUNCE_SECONDS', 1.0))

    # Laboratory REST backend
    LAB_API_URL = os.environ.get('LAB_API_URL', 'http://localhost:8000')
    LAB_API_TIMEOUT = int(os.environ.get('LAB_API_TIMEOUT', 10))

    # Personnel allowed on each signature column
    PERFORMED_BY_OPTIONS = _split_names(
        os.environ.get('PERFORMED_BY_OPTIONS'), ['Deyvi Infanzon', 'Ivan Chancon'])
    REVIEWED_BY_OPTIONS = _split_names(
        os.environ.get('REVIEWED_BY_OPTIONS'), ['Fabian la Rosa'])
    APPROVED_BY_OPTIONS = _split_names(
        os.environ.get('APPROVED_BY_OPTIONS'), ['Irma Coaquira'])

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # JSON API; the form session is driven by fetch calls
    WTF_CSRF_ENABLED = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'  # in-memory
    LAB_API_URL = 'http://test-lab:8000'
    DRAFT_DEBOUNCE_SECONDS = 60  # tests flush explicitly


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
