"""
dbtasks - create, script and compare development databases
"""

__version__ = "0.1.0"

from .core import DatabaseTasks
from .errors import DatabaseTaskError
from .models import Project, Settings

__all__ = ["DatabaseTasks", "DatabaseTaskError", "Project", "Settings"]
