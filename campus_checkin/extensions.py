# extensions.py
"""
Extension instances shared across the package, plus the storage health probe.

The probe doubles as the scanner's connectivity check: a failed ledger call
followed by a failed probe is what halts a scanner.
"""

import logging
import threading
import time

from flask import jsonify
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from sqlalchemy import text

db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()
login_manager = LoginManager()

logger = logging.getLogger(__name__)

# Probe results, shared by request threads and the monitor thread
connection_stats = {
    'total_checks': 0,
    'failed_checks': 0,
    'consecutive_failures': 0,
    'last_check': 0,
    'last_latency_ms': None,
    'last_error': None,
    'healthy': True
}
connection_lock = threading.Lock()


def get_connection_stats():
    """Snapshot of the storage probe counters."""
    with connection_lock:
        return dict(connection_stats)


def _record_probe(healthy, latency_ms=None, error=None):
    with connection_lock:
        connection_stats['total_checks'] += 1
        connection_stats['last_check'] = time.time()
        connection_stats['last_latency_ms'] = latency_ms
        connection_stats['last_error'] = error
        connection_stats['healthy'] = healthy
        if healthy:
            connection_stats['consecutive_failures'] = 0
        else:
            connection_stats['failed_checks'] += 1
            connection_stats['consecutive_failures'] += 1


def check_database_health():
    """
    Run a trivial query against registration storage.

    Uses its own connection so a failed request transaction cannot mask an
    outage (or fake one). Requires an application context.

    Returns:
        tuple: (healthy, message)
    """
    started = time.monotonic()
    try:
        with db.engine.connect() as connection:
            connection.execute(text("SELECT 1")).scalar()
    except Exception as e:
        logger.error(f"Storage probe failed: {e}")
        _record_probe(False, error=str(e))
        return False, f"Database connection failed: {str(e)}"

    latency_ms = round((time.monotonic() - started) * 1000, 1)
    _record_probe(True, latency_ms=latency_ms)
    return True, "Database connection is healthy"


def init_extensions(app):
    """
    Bind the shared extensions to an application.

    Args:
        app: Flask application instance
    """
    db.init_app(app)
    migrate.init_app(app, db)

    login_manager.init_app(app)
    login_manager.session_protection = app.config.get('SESSION_PROTECTION', 'basic')

    csrf.init_app(app)

    # Sign-in happens in the identity provider; sessions only carry a profile id
    @login_manager.user_loader
    def load_profile(profile_id):
        from campus_checkin.models import Profile

        return db.session.get(Profile, profile_id)

    @login_manager.unauthorized_handler
    def authentication_required():
        return jsonify({
            'success': False,
            'message': 'Authentication required',
            'error_code': 'authentication_required'
        }), 401

    app.logger.info("Database, login, migrations and CSRF extensions bound")


def start_database_health_monitor(app, interval=300):
    """
    Probe storage every `interval` seconds on a daemon thread.

    Only state changes are logged, so a long outage does not flood the log.
    """
    if not app.config.get('ENABLE_DB_HEALTH_MONITOR', False):
        return None

    def monitor():
        was_healthy = True
        while True:
            try:
                with app.app_context():
                    healthy, message = check_database_health()
            except Exception as e:
                healthy, message = False, str(e)
                logger.error(f"Storage monitor error: {e}", exc_info=True)

            if healthy != was_healthy:
                if healthy:
                    logger.info("Storage monitor: registration storage reachable again")
                else:
                    logger.warning(f"Storage monitor: {message}")
                was_healthy = healthy

            time.sleep(interval)

    monitor_thread = threading.Thread(target=monitor, name='storage-monitor', daemon=True)
    monitor_thread.start()
    logger.info(f"Started storage monitor thread (every {interval}s)")
    return monitor_thread
