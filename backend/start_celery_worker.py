#!/usr/bin/env python3
"""Start the import worker with suppressed security warnings for containerized environments."""

import logging
import sys
import warnings

from celery.bin import worker

# Suppress the superuser privilege warning
warnings.filterwarnings('ignore', category=UserWarning, message='.*superuser privileges.*')
warnings.filterwarnings('ignore', category=RuntimeWarning, message='.*superuser privileges.*')

from musivault.core.config import get_settings
from musivault.db import models  # noqa: F401
from musivault.db.base import Base
from musivault.db.session import engine
from musivault.workers.celery_app import celery_app

if __name__ == '__main__':
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    Base.metadata.create_all(bind=engine)

    worker_app = worker.worker(app=celery_app)

    # Rows of one job are processed sequentially; a solo pool keeps one job per process
    sys.argv = [
        'celery',
        '-A', 'musivault.workers.celery_app.celery_app',
        'worker',
        '--loglevel=info',
        '--queues=imports',
        '--pool=solo',
        '--without-mingle',
        '--without-gossip',
    ] + sys.argv[1:]

    worker_app.run()
