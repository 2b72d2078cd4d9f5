# config/settings.py
"""
Shim so DJANGO_SETTINGS_MODULE='config.settings' works.
Dev settings locally; point DJANGO_SETTINGS_MODULE at config.prod in deployments.
"""
from .dev import *  # noqa
