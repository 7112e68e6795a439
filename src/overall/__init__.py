"""
Overall - GitHub repository tracker.

Reconciles remote branch/PR state, local working copies and a local cache
into a single priority per repository.
"""

__version__ = "0.3.0"

from overall.core.priority.models import BranchStatus, Priority

__all__ = ["BranchStatus", "Priority", "__version__"]
