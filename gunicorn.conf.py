"""
Production Server Configuration

Run the insights API with Uvicorn workers under Gunicorn.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Worker processes
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 10000
max_requests_jitter = 1000
# Dashboard requests can scan long date ranges
timeout = int(os.getenv("GUNICORN_TIMEOUT", 120))
keepalive = 5
graceful_timeout = 30

# Process naming
proc_name = "erp-insights-api"

# Server mechanics
daemon = False
pidfile = os.getenv("PIDFILE", "/tmp/erp-insights.pid")

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = None
