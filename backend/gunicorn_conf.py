# backend/gunicorn_conf.py

# Gunicorn config file

# Conversation state and flow sets are held in process memory, so the app
# must run as a single worker process.
bind = "0.0.0.0:10000"
workers = 1
worker_class = "uvicorn.workers.UvicornWorker"
wsgi_app = "convers.main:app"

# Settings for running behind a reverse proxy like Nginx
forwarded_allow_ips = "*"

# --- Logging ---
accesslog = "-"
errorlog = "-"
loglevel = "info"
