"""
models/__init__.py
------------------
Re-export all models so the schema migrator sees every table via a single
import:

    from phrofs.models import Base
"""

from phrofs.db.base import Base
from phrofs.models.admin_log import AdminLog
from phrofs.models.professor import Comment, Professor
from phrofs.models.resource import Resource
from phrofs.models.review import Review
from phrofs.models.subject import Note, Subject
from phrofs.models.user import User

__all__ = [
    "Base",
    "AdminLog",
    "Comment",
    "Note",
    "Professor",
    "Resource",
    "Review",
    "Subject",
    "User",
]
