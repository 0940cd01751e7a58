import os

bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"

workers = int(os.getenv("WEB_CONCURRENCY", "2"))

worker_class = "uvicorn.workers.UvicornWorker"
wsgi_app = "salon_booking.main:app"

timeout = int(os.getenv("GUNICORN_TIMEOUT", "120"))
graceful_timeout = 30
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()


def post_fork(server, worker):
    # Pooled connections opened in the master must not be shared with workers
    from salon_booking.database import engine

    engine.dispose(close=False)
    server.log.info(f"Worker {worker.pid} started with a fresh database pool")
