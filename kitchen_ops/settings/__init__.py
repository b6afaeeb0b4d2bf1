# kitchen_ops/settings/__init__.py

import os

settings_module = os.getenv('DJANGO_SETTINGS_MODULE', 'kitchen_ops.settings.local')

if 'cloud' in settings_module:
    from .cloud import *
elif 'test' in settings_module:
    from .test import *
else:
    from .local import *
