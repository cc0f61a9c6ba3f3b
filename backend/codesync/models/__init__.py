"""
CodeSync Backend — ORM Models
===============================

Importing this package registers every table with `Base.metadata`, which is
what Alembic autogenerate and the test suite's `create_all` rely on.
"""

from codesync.models.user import User, Account
from codesync.models.snippet import Snippet, SnippetTag
from codesync.models.comment import Comment
from codesync.models.social import Like, Follow

__all__ = ["User", "Account", "Snippet", "SnippetTag", "Comment", "Like", "Follow"]
