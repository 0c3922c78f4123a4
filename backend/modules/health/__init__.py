"""
Service health checks for the reviews API.
"""
