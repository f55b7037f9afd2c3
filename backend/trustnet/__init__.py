"""
TrustNet Backend — Application Package Initializer
===================================================

What: Marks the `trustnet` directory as a Python package.
Who:  Imported by uvicorn (`trustnet.main:app`), Alembic, and pytest.

Architecture Note:
    The notification backend is layered the same way top to bottom:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, auth dependency
    ├─────────────────────────────────────┤
    │   SubscriptionManager (Business)    │  ← opt-in state machine
    ├─────────────────────────────────────┤
    │  Store / Topic / UserDirectory      │  ← database, SNS, identity provider
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← async SQLAlchemy engine
    └─────────────────────────────────────┘

    Collaborators are built once in the lifespan handler and handed to routes
    through `app.state`, so every layer can be exercised with fakes.
"""

__version__ = "1.0.0"
