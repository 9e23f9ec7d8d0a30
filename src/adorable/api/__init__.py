"""FastAPI application and REST API endpoints.

This module contains:
- Main FastAPI application configuration
- Authentication and team role dependencies
- Team, kit, project and webhook endpoints
"""
