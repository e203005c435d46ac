# Services package init
"""
Messagely Backend — Services Layer
=====================================

What:  Business logic between routes (HTTP) and database (persistence).

Service Inventory:
    - TokenService:   issue / verify identity JWTs (configured per app)
    - UserService:    register, authenticate, login timestamp, profiles,
                      enriched message listings
    - MessageService: get with both profiles, create, mark read

Services receive the request's AsyncSession on every call and never see
the HTTP request. Authorization decisions belong to the routes.
"""
