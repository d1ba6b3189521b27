# booklingo/__init__.py
"""
Booklingo - layout-preserving PDF / EPUB translation

Extracts text from page-based and markup-based documents, translates it in
ordered concurrent batches and rebuilds the document around the result.
"""

from pathlib import Path


def _get_version() -> str:
    """
    Read the version from pyproject.toml.

    Falls back to the hard-coded version when the package is installed
    without the project file next to it.

    Returns:
        str: version string (e.g. "0.3.0")
    """
    try:
        import tomllib  # Python 3.11+ standard library

        pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            with open(pyproject_path, "rb") as f:
                data = tomllib.load(f)
            return data.get("project", {}).get("version", "0.0.0")
    except (ImportError, OSError, ValueError):
        pass

    return "0.3.0"


__version__ = _get_version()
__app_name__ = "Booklingo"
