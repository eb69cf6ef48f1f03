# ABOUTME: Utilities package initialization for the Kubernetes MCP server
# ABOUTME: Contains shared utilities for structured and audit logging

"""
Kubernetes MCP Utilities Package

Shared utilities:
    - logging.py: Structured logging with correlation IDs and the audit trail
"""
