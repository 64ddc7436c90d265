import os
from celery import Celery
from dotenv import load_dotenv

# --- CELERY WORKER INITIALIZATION ---

# Load environment variables before the app reads its broker URL.
load_dotenv()

celery_app = Celery('tasks',
                    broker=os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0'),
                    include=['tasks'])  # This tells Celery to look for tasks in tasks.py

celery_app.conf.update(
    task_track_started=True,
    timezone=os.environ.get("APP_TIMEZONE", "Asia/Jakarta"),
    beat_schedule={
        'refresh-impact-data': {
            'task': 'refresh_impact_data',
            'schedule': 600.0,
        },
    },
)
