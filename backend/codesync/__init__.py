"""
CodeSync Backend
================

HTTP JSON API for CodeSync, a code-snippet sharing site: snippets with
tags and visibility, likes, one-level comment threads, follows, profiles
with avatars, and email/password plus GitHub/Google sign-in.

Layers:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← visibility, ownership, toggles
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
