"""
Gunicorn configuration for the LinkShare link API
"""
import multiprocessing
import os

# Server socket
bind = os.getenv("LINKSHARE_BIND", "127.0.0.1:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("LINKSHARE_WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
timeout = 120
keepalive = 5

# Logging ("-" is stdout/stderr)
accesslog = os.getenv("LINKSHARE_ACCESS_LOG", "-")
errorlog = os.getenv("LINKSHARE_ERROR_LOG", "-")
loglevel = os.getenv("LINKSHARE_LOG_LEVEL", "info")
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process naming
proc_name = "linkshare-api"

# Server mechanics
daemon = False
pidfile = os.getenv("LINKSHARE_PIDFILE")
user = None
group = None
tmp_upload_dir = None

capture_output = True
enable_stdio_inheritance = True

# the app module creates the engine at import time; workers must not share it
preload_app = False

graceful_timeout = 30

reload = False
reload_engine = "auto"

wsgi_app = "linkshare.main:app"
