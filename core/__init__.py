"""Core application for the CerviHealth backend.

This package contains models, serializers, views and route registrations
implementing the API contract expected by the mobile application.
"""
