"""Entra ID Onboarding Admin Flask Application Package.

To use the Flask app:
    from app.flask_app import create_app

To use Microsoft Graph services:
    from app.core.graph import UserService, GraphClient

To use provisioning service:
    from app.core.provisioning_service import OnboardingWorkflow
"""
# Note: We don't import flask_app by default to avoid Flask dependency
# for CLI scripts that only use app.core
