"""Approval-assignee resolution for multi-tenant workforce workflows."""

__version__ = "0.3.0"
