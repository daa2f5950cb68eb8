# Celery instance is defined in hr_backoffice/celery.py
# It creates celery_app object and points it to Django settings
from .celery import celery_app

# 'from hr_backoffice import *', only exports celery_app
__all__ = ("celery_app",)

""" Run workers with "celery -A hr_backoffice worker -l info"
    -A hr_backoffice imports this module, which exposes celery_app """
