from celery import Celery
from celery.schedules import crontab

from app import app


def make_celery(flask_app):
    """Celery app for the rental API. Tasks run inside a Flask app context so they can reach db and mail."""
    worker = Celery(
        flask_app.import_name,
        broker=flask_app.config['CELERY_BROKER_URL'],
        backend=flask_app.config['CELERY_RESULT_BACKEND'],
        include=['tasks'],
    )
    worker.conf.update(flask_app.config)

    class AppContextTask(worker.Task):
        def __call__(self, *args, **kwargs):
            with flask_app.app_context():
                return self.run(*args, **kwargs)

    worker.Task = AppContextTask
    return worker


# Releases cars held by checkouts that were never paid
app.config['CELERYBEAT_SCHEDULE'] = {
    'expire-unpaid-bookings-every-5-minutes': {
        'task': 'tasks.expire_pending_bookings',
        'schedule': crontab(minute='*/5'),
    },
}
celery = make_celery(app)
