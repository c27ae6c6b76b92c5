"""Topolop: unified multi-tool code analysis with cross-tool correlation."""

__version__ = "0.1.0"
