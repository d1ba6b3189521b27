# booklingo/config/__init__.py
from .settings import AppSettings, PdfLayoutOptions, RequestOptions, get_default_settings_path

__all__ = ['AppSettings', 'PdfLayoutOptions', 'RequestOptions', 'get_default_settings_path']
