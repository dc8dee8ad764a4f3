"""Core pooling primitives.

Submodules are imported directly (``resource_pool.core.pool`` and so on);
the package itself stays import-light because ``resource_pool.config``
reads ``core.constants`` while logging is being set up.
"""
