# __init__.py
"""
Application factory for the campus event check-in service.

Students register for events and carry a QR ticket; club admins and faculty
scan those tickets at the door.
"""

import os
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify
from flask.logging import default_handler
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from campus_checkin.config import get_config
from campus_checkin.extensions import db, init_extensions, start_database_health_monitor

SERVICE_LOGGERS = (
    'registration_ledger',
    'ticket_service',
    'check_in_service',
    'scan_session',
    'check_in',
    'events',
    'campus_checkin.extensions',
)


def setup_logging(app):
    """
    Attach console (and optionally rotating file) handlers to the app logger
    and to every service logger.

    Args:
        app: Flask application instance
    """
    level = logging.DEBUG if app.debug else logging.INFO
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(threadName)s : %(message)s')

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    handlers = [console_handler]

    if app.config.get('LOG_TO_FILE'):
        os.makedirs(app.config['LOG_DIR'], exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(app.config['LOG_DIR'], 'campus_checkin.log'),
            maxBytes=10 * 1024 * 1024,
            backupCount=5
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    app.logger.removeHandler(default_handler)
    for target in [app.logger] + [logging.getLogger(name) for name in SERVICE_LOGGERS]:
        target.setLevel(level)
        target.propagate = False
        if not target.handlers:
            for handler in handlers:
                target.addHandler(handler)

    # Keep SQL statements out of the log even in debug
    sa_logger = logging.getLogger('sqlalchemy.engine')
    sa_logger.setLevel(logging.WARNING)
    sa_logger.propagate = False


def register_blueprints(app):
    from .controllers.check_in import check_in_bp
    from .controllers.events import events_bp

    app.register_blueprint(check_in_bp, url_prefix='/check-in')
    app.register_blueprint(events_bp, url_prefix='/events')


def register_error_handlers(app):
    """
    JSON bodies for errors that escape the blueprints.

    Bodies carry the same success/message/error_code keys the routes use.
    """
    from campus_checkin.services.errors import CheckInError, StorageUnavailable

    def error_body(message, error_code, status_code):
        return jsonify({'success': False, 'message': message, 'error_code': error_code}), status_code

    @app.errorhandler(CheckInError)
    def handle_check_in_error(e):
        status_code = 503 if isinstance(e, StorageUnavailable) else 400
        app.logger.warning(f"Unhandled {e.error_code}: {e.message}")
        return error_body(e.message, e.error_code, status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return error_body(e.description, e.name.lower().replace(' ', '_'), e.code)

    @app.errorhandler(Exception)
    def handle_exception(e):
        app.logger.error(f"Unhandled exception: {str(e)}", exc_info=True)
        message = str(e) if app.debug else 'Internal server error'
        return error_body(message, 'internal_error', 500)


def register_shell_context(app):
    @app.shell_context_processor
    def make_shell_context():
        from campus_checkin.models import Event, EventRegistration, Profile
        from campus_checkin.services.check_in_service import CheckInVerifier
        from campus_checkin.services.registration_ledger import RegistrationLedger
        from campus_checkin.services.ticket_service import TicketEncoder

        return {
            'db': db,
            'Profile': Profile,
            'Event': Event,
            'EventRegistration': EventRegistration,
            'RegistrationLedger': RegistrationLedger,
            'TicketEncoder': TicketEncoder,
            'CheckInVerifier': CheckInVerifier
        }


def register_template_globals(app):
    @app.context_processor
    def inject_site():
        return {
            'app_name': app.config.get('SITE_NAME', 'CampusLife'),
            'current_year': datetime.now().year
        }


def register_health_checks(app):
    """
    /health for the load balancer, /health/database for the storage probe.

    Args:
        app: Flask application instance
    """

    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'ok',
            'version': app.config.get('VERSION', '1.0.0'),
            'timestamp': datetime.now().isoformat()
        })

    @app.route('/health/database')
    def database_health_check():
        from campus_checkin import extensions

        healthy, message = extensions.check_database_health()
        body = {
            'status': 'healthy' if healthy else 'unhealthy',
            'message': message,
            'stats': extensions.get_connection_stats(),
            'timestamp': datetime.now().isoformat()
        }
        return jsonify(body), 200 if healthy else 503


def create_app(config_name=None, config_overrides=None):
    """
    Build a configured application.

    Args:
        config_name (str): 'development', 'production' or 'testing'; defaults to FLASK_ENV
        config_overrides (dict): Settings applied on top of the named configuration

    Returns:
        Flask: Configured application
    """
    load_dotenv()

    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))
    if config_overrides:
        app.config.update(config_overrides)

    if not app.testing:
        setup_logging(app)

    init_extensions(app)
    start_database_health_monitor(app, interval=app.config.get('DB_HEALTH_CHECK_INTERVAL', 300))

    register_blueprints(app)
    register_error_handlers(app)
    register_shell_context(app)
    register_template_globals(app)
    register_health_checks(app)

    from .cli import register_cli_commands
    register_cli_commands(app)

    app.logger.info(f"campus_checkin {app.config.get('VERSION')} ready ({config_name} config)")
    return app
