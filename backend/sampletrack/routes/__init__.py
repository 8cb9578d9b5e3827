from importlib import import_module

modules = [
    'operations',
    'labware',
    'admin',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
