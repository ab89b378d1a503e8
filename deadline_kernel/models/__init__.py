"""ORM models.  Importing this package registers every table on Base.metadata."""

from deadline_kernel.models.profile_change import ProfileChangeModel
from deadline_kernel.models.task import TaskModel

__all__ = [
    "TaskModel",
    "ProfileChangeModel",
]
