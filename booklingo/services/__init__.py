# booklingo/services/__init__.py
"""
Service layer for Booklingo.

Use explicit imports like:
    from booklingo.services.translation_service import TranslationService
"""

# Fast imports - error taxonomy
from .exceptions import (
    BooklingoError,
    ConfigurationError,
    ExtractionError,
    TranslationError,
    IntegrityError,
    AssemblyError,
)

# Lazy-loaded services via __getattr__
_LAZY_IMPORTS = {
    'BatchScheduler': 'batch_scheduler',
    'TranslationService': 'translation_service',
    'detect_file_type': 'translation_service',
    'TranslationPort': 'translators',
    'create_translator': 'translators',
}

# Submodules that can be accessed via __getattr__ (for patching support)
_SUBMODULES = {'batch_scheduler', 'translation_service', 'translators', 'exceptions'}


def __getattr__(name: str):
    """Lazy-load service modules on first access."""
    import importlib
    # Support accessing submodules directly (for unittest.mock.patch)
    if name in _SUBMODULES:
        return importlib.import_module(f'.{name}', __package__)
    if name in _LAZY_IMPORTS:
        module_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(f'.{module_name}', __package__)
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'BooklingoError',
    'ConfigurationError',
    'ExtractionError',
    'TranslationError',
    'IntegrityError',
    'AssemblyError',
    'BatchScheduler',
    'TranslationService',
    'detect_file_type',
    'TranslationPort',
    'create_translator',
]
