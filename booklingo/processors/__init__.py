# booklingo/processors/__init__.py
"""
File processors for Booklingo.

Processors that pull in PyMuPDF, lxml or ebooklib are lazy-loaded for
faster startup. Use explicit imports like:
    from booklingo.processors.pdf_processor import PdfProcessor
"""

# Fast imports - base class
from .base import FileProcessor

# Lazy-loaded processors via __getattr__
_LAZY_IMPORTS = {
    'PdfProcessor': 'pdf_processor',
    'EpubProcessor': 'epub_processor',
    'DomTextPipeline': 'markup_text',
    'PaginationEngine': 'pdf_layout',
    'DocumentAssembler': 'pdf_assembler',
    'DocumentGraph': 'pdf_graph',
    'PdfSnippetExtractor': 'pdf_extractor',
}

# Submodules that can be accessed via __getattr__ (for patching support)
_SUBMODULES = {'base', 'pdf_processor', 'epub_processor', 'markup_text', 'pdf_layout',
               'pdf_assembler', 'pdf_graph', 'pdf_extractor', 'pdf_operators', 'pdf_writer'}


def __getattr__(name: str):
    """Lazy-load heavy processor modules on first access."""
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
    'FileProcessor',
    'PdfProcessor',
    'EpubProcessor',
    'DomTextPipeline',
    'PaginationEngine',
    'DocumentAssembler',
    'DocumentGraph',
    'PdfSnippetExtractor',
]
