# Celery instance is defined in bk_project/celery.py
# Importing it here makes sure shared_task picks the project app up
from .celery import celery_app

# 'from bk_project import *', only exports celery_app
__all__ = ("celery_app",)

""" Workers are started with "celery -A bk_project worker -l info",
    beat (aging refresh, nightly drift check) with
    "celery -A bk_project beat -l info". """
