# Routes package init
"""
Messagely Backend — API Routes Package
=========================================

Route Inventory:
    - auth.py:      POST /auth/login, POST /auth/register
    - users.py:     GET  /users/, /users/{username}, /users/{username}/to|from
    - messages.py:  GET  /messages/{id}, POST /messages/, POST /messages/{id}/read
    - health.py:    GET  /health

Routes stay thin: parse the request, apply the authorization guard,
call a service, wrap the result. Business rules live in services.
"""
