import os

from .base import *  # noqa: F401,F403

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")
DEBUG = False
RECORD_STORE = os.getenv("RECORD_STORE", "mysql")
