import multiprocessing

# Sensible defaults for a small dyno/container; tune as needed
workers = int((multiprocessing.cpu_count() * 2) + 1)
threads = 2
worker_class = "gthread"
# Each worker builds its own app so every process gets its own DB pool and Redis client
preload_app = False
wsgi_app = "qrlock:create_app()"
bind = ":8000"
# Heroku/Render style proxy headers
forwarded_allow_ips = "*"
timeout = 30
keepalive = 75
accesslog = "-"
errorlog = "-"
loglevel = "info"
