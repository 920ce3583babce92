from importlib import import_module

modules = [
    'auth',
    'teams',
    'projects',
    'assets',
    'versions',
    'annotations',
    'comments',
    'approvals',
    'sharing',
    'review',
    'notifications',
    'webhooks',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules
