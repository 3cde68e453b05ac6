"""
Resource types and their CLI actions.

Importing this package imports every resource module, which registers
their actions with teckboard.registry.
"""

import importlib
import pkgutil

for _, _module_name, _ in pkgutil.iter_modules(__path__):
    importlib.import_module(f"{__name__}.{_module_name}")
