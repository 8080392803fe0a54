"""Gunicorn settings for the school stock tracker API."""
import os

wsgi_app = "app:app"

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:5000")

# One school's traffic; two workers keep a stock-take submit from blocking lookups.
workers = int(os.getenv("GUNICORN_WORKERS", "2"))

# XLSX imports and stock-take reports are built in-request.
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))

loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
accesslog = os.getenv("GUNICORN_ACCESS_LOGFILE", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOGFILE", "-")

forwarded_allow_ips = os.getenv("GUNICORN_FORWARDED_ALLOW_IPS", "*")
