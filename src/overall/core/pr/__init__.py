"""Pull request creation."""

from overall.core.pr.service import PRResult, PRService

__all__ = ["PRResult", "PRService"]
