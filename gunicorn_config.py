import multiprocessing

# Gunicorn Production Configuration
#   gunicorn -c gunicorn_config.py wsgi:app
# Every request is handled independently; recordings coordinate only
# through the database (unique indexes, atomic increments, the journal).
workers = multiprocessing.cpu_count() * 2 + 1
threads = 2
worker_class = 'gthread'

# Resilience
timeout = 120
max_requests = 1000
max_requests_jitter = 100
keepalive = 5

# Logging
accesslog = '-'       # Stdout
errorlog = '-'        # Stderr
loglevel = 'info'
capture_output = True
