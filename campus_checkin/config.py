import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


def build_engine_options(database_uri, io_timeout):
    """
    Build SQLAlchemy engine options so every ledger call is bounded by io_timeout.

    Args:
        database_uri (str): SQLAlchemy database URI
        io_timeout (int): Connect/statement timeout in seconds

    Returns:
        dict: Engine options for SQLALCHEMY_ENGINE_OPTIONS
    """
    if database_uri.startswith('sqlite'):
        # Busy timeout: how long a writer waits for the database lock
        return {"connect_args": {"timeout": io_timeout}}

    options = {
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,  # Check connection health before use
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": io_timeout,
    }

    if database_uri.startswith('postgresql'):
        options["connect_args"] = {
            "connect_timeout": io_timeout,
            "options": f"-c statement_timeout={io_timeout * 1000}",
        }
    elif database_uri.startswith('mysql'):
        options["connect_args"] = {
            "connect_timeout": io_timeout,
            "read_timeout": io_timeout,
            "write_timeout": io_timeout,
        }

    return options


class Config:
    """Base configuration class with all settings as static attributes."""

    # Core configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key-here'
    DEBUG = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'
    VERSION = '1.0.0'

    # Session settings
    PERMANENT_SESSION_LIFETIME = timedelta(hours=2)
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_PROTECTION = 'basic'

    # Database configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///campus_checkin.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound (seconds) for any single ledger call
    LEDGER_IO_TIMEOUT = int(os.environ.get('LEDGER_IO_TIMEOUT', 10))
    SQLALCHEMY_ENGINE_OPTIONS = build_engine_options(SQLALCHEMY_DATABASE_URI, LEDGER_IO_TIMEOUT)

    # Health monitoring
    ENABLE_DB_HEALTH_MONITOR = os.environ.get('ENABLE_DB_HEALTH_MONITOR', 'true').lower() == 'true'
    DB_HEALTH_CHECK_INTERVAL = 300  # 5 minutes

    # Logging
    LOG_TO_FILE = os.environ.get('LOG_TO_FILE', 'false').lower() == 'true'
    LOG_DIR = os.environ.get('LOG_DIR') or os.path.join(os.path.dirname(os.path.abspath(__file__)), 'logs')

    # Ticket settings
    MAX_CREDENTIAL_LENGTH = 2048
    TICKET_QR_BOX_SIZE = 10
    TICKET_QR_BORDER = 4

    # Scanner settings
    RECENT_SCANS_LIMIT = 10

    # Site settings
    SITE_NAME = 'CampusLife'


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SESSION_COOKIE_SECURE = False
    ENABLE_DB_HEALTH_MONITOR = False
    SQLALCHEMY_ECHO = os.environ.get('SQL_DEBUG', 'false').lower() == 'true'


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False

    # Ensure secret key is set in production
    SECRET_KEY = os.environ.get('SECRET_KEY')

    # Use production database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')

    # Errors are also forwarded to syslog when set (host:port or socket path)
    SYSLOG_SERVER = os.environ.get('SYSLOG_SERVER')

    def __init__(self):
        if not self.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if not self.SQLALCHEMY_DATABASE_URI:
            raise ValueError("DATABASE_URL environment variable must be set in production")
        self.SQLALCHEMY_ENGINE_OPTIONS = build_engine_options(
            self.SQLALCHEMY_DATABASE_URI, self.LEDGER_IO_TIMEOUT
        )


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = build_engine_options('sqlite:///:memory:', 5)
    WTF_CSRF_ENABLED = False
    SESSION_COOKIE_SECURE = False
    SESSION_PROTECTION = None
    ENABLE_DB_HEALTH_MONITOR = False


# Configuration dictionary
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name=None):
    """Get a configuration instance by name (defaults to FLASK_ENV)."""
    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    return config_by_name[config_name]()
