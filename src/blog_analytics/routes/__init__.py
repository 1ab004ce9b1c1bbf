"""
Analytics HTTP routes.

Public tracking endpoint and the JSON dashboard API.
"""

from .dashboard import create_dashboard_router
from .tracking import create_tracking_router, visit_context

__all__ = ["create_dashboard_router", "create_tracking_router", "visit_context"]
