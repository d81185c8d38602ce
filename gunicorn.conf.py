"""
Gunicorn configuration for the Ashram Dashboard
"""

import os
import multiprocessing

# Server socket
bind = os.getenv('GUNICORN_BIND', '0.0.0.0:5000')
backlog = 2048

# Worker processes
workers = int(os.getenv('GUNICORN_WORKERS', multiprocessing.cpu_count() * 2 + 1))
worker_class = "sync"
timeout = 180
keepalive = 2

max_requests = 1000
max_requests_jitter = 100

preload_app = True

wsgi_app = "wsgi:application"

# Logging
log_dir = os.getenv('LOG_DIR', '/var/log/ashram-dashboard')
accesslog = os.path.join(log_dir, 'gunicorn_access.log')
errorlog = os.path.join(log_dir, 'gunicorn_error.log')
loglevel = os.getenv('GUNICORN_LOG_LEVEL', 'info')
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

proc_name = "ashram-dashboard"

daemon = False
tmp_upload_dir = "/tmp"

# Security
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190

capture_output = True

raw_env = [
    'APP_CONFIG=production',
]


def when_ready(server):
    server.log.info("Ashram Dashboard is ready. Listening on: %s", server.address)


def post_fork(server, worker):
    server.log.info("Worker spawned (pid: %s)", worker.pid)


def on_exit(server):
    server.log.info("Ashram Dashboard is shutting down")
