# app.py
"""
WSGI entry point (gunicorn loads `app:app`) and development server.
"""

import logging
import os
from logging.handlers import SysLogHandler

from campus_checkin import create_app


def syslog_address(value):
    """'host:port' becomes a UDP address tuple; anything else is a socket path."""
    if ':' in value:
        host, port = value.rsplit(':', 1)
        return host, int(port)
    return value


def forward_errors_to_syslog(app):
    server = app.config.get('SYSLOG_SERVER')
    if not server:
        return

    handler = SysLogHandler(address=syslog_address(server))
    handler.setLevel(logging.ERROR)
    app.logger.addHandler(handler)
    app.logger.info(f"Forwarding errors to syslog at {server}")


config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

if config_name == 'production':
    forward_errors_to_syslog(app)


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    debug = config_name == 'development'

    app.logger.info(f"Starting development server on port {port}, debug={debug}")
    # Threaded so two browser tabs can scan against each other locally
    app.run(host='0.0.0.0', port=port, debug=debug, threaded=True)
