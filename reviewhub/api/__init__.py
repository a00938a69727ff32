"""
ReviewHub FastAPI Application.

This package contains the REST API for ReviewHub:

- main: FastAPI application entry point and configuration
- routes/: API endpoint definitions organized by resource
- models: Pydantic request/response models
- dependencies: authentication and service providers
- errors: domain error to HTTP status mapping

API Structure:
- /health - Health, liveness and readiness checks
- /api/v1/auth, /businesses, /reviews, /locations, /integrations
- /api/v1/competitors, /customers, /campaigns, /sms
- /api/v1/notifications, /team, /analytics, /ai, /subscription
- /api/v1/webhooks - Stripe, Google and Facebook callbacks

Example:
    from reviewhub.api.main import app

    # Run with: uvicorn reviewhub.api.main:app --reload
"""
