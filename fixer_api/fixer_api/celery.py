import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'fixer_api.settings')

app = Celery('fixer_api')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
