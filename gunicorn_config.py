import os

# Server Socket
bind = os.environ.get("GUNICORN_BIND", "127.0.0.1:8000")  # NGINX proxies requests

# Worker Settings
# Scans from several entrances arrive concurrently; each request runs in its own thread
workers = int(os.environ.get("GUNICORN_WORKERS", 5))
threads = 2
worker_class = "gthread"

# Security & Performance
timeout = 30  # Ledger calls are bounded by LEDGER_IO_TIMEOUT well below this
graceful_timeout = 30
keepalive = 5
max_requests = 1000
max_requests_jitter = 50

# Logging
accesslog = os.environ.get("GUNICORN_ACCESS_LOG", "-")
errorlog = os.environ.get("GUNICORN_ERROR_LOG", "-")
loglevel = "info"

# Process Name
proc_name = "campus_checkin_gunicorn"

wsgi_app = "app:app"
