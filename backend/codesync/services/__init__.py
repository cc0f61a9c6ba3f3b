"""
CodeSync Backend — Services Package
====================================

Business logic, independent of HTTP. Each module exposes a stateless
singleton (e.g. `snippet_service`) whose methods take the request's
AsyncSession as their first argument.
"""
