# Services package init
"""
Bones Backend — Services Layer
===============================

What:  Business logic layer sitting between routes (HTTP) and the store.
Why:   Separation of concerns — routes handle HTTP, services handle business rules.

Service Inventory:
    - UserService: Validation and CRUD over the in-memory user collection

Why services are separate from routes:
    1. Testability: Services can be unit-tested without HTTP overhead
    2. Reusability: Same service can be driven by a CLI or another transport
    3. Single responsibility: Routes handle HTTP; services handle logic
"""
