"""Reference symbol index for Python code bases."""

from .python_index import PythonSymbolIndex, import_aliases

__all__ = ["PythonSymbolIndex", "import_aliases"]
