"""Core Business Logic Module

This module provides the onboarding logic for Entra ID accounts,
independent of the Flask page.

Architecture:
    - Pure Python (no Flask dependencies in core logic)
    - Testable with a mocked Graph client
    - Reusable across the onboarding page and the CLI

Module Structure:
    - graph/            : Low-level Microsoft Graph client and services
    - classifier.py     : Member/guest classification by issuer domain
    - models.py         : Value objects (UserProfile, AccountRecord, ...)
    - provisioning_service.py : Account creation, TAP issuance, invitations
    - validators.py     : Onboarding form validation

Usage Pattern:
    Import explicitly when needed:
        from app.core.provisioning_service import OnboardingWorkflow, ProvisioningError
        from app.core.classifier import classify, AccountKind
        from app.core.validators import profile_from_form

Public APIs:
    Provisioning (app.core.provisioning_service):
        - provision()
        - issue_access()
        - invite_guest()
        - count_users()
        - OnboardingWorkflow.run()
        - ProvisioningError and subclasses

    Graph Client (app.core.graph):
        - GraphClient (HTTP client with credential-backed tokens)
        - UserService, AuthenticationMethodService, InvitationService
"""
