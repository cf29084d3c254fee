from .traceback import format_error, format_location, format_traceback

__all__ = ["format_error", "format_location", "format_traceback"]
