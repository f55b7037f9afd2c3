# Services package init
"""
TrustNet Backend — Services Layer
===================================

Service Inventory:
    - SubscriptionManager: opt-in state machine (auto-subscribe, subscribe,
      status, toggle, email unsubscribe, verification notification)
    - SubscriptionStore: conditional writes over the subscriptions table
    - NotificationTopic: AWS SNS registration and publish
    - UserDirectory: bearer token verification (JWKS or shared secret)

All four are constructed once in the lifespan handler (main.py) and reach
route handlers through FastAPI dependencies reading `app.state`.
"""
