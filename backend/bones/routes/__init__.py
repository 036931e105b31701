# Routes package init
"""
Bones Backend — API Routes Package
===================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - users.py:   GET    /api/users          (list users)
                  POST   /api/users          (create user)
                  GET    /api/users/{id}     (get single user)
                  DELETE /api/users/{id}     (delete user)
    - health.py:  GET    /health             (service health check)
                  GET    /api/hello          (frontend connectivity probe)

Design Principle:
    Routes are THIN: extract data from the request, call the service,
    format the response. Business logic belongs in services.
"""
