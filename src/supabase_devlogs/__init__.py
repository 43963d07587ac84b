"""Supabase application shell with development log instrumentation."""

__version__ = "0.1.0"
