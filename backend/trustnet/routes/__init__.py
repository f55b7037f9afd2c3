# Routes package init
"""
TrustNet Backend — API Routes Package
=======================================

Route Inventory:
    - notifications.py: /api/notifications/* (subscription state machine)
    - health.py:        GET /health
    - dependencies.py:  auth + collaborator dependencies shared by the routes

Routes stay thin: read identity claims and the body, call
SubscriptionManager, shape the response. Failures are raised as typed
exceptions and rendered centrally in main.py.
"""
