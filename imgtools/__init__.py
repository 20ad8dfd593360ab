"""Backend for an online image toolbox: IP visit control, static files, task ids, downloads and usage statistics."""

__version__ = "0.1.0"