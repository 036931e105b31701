# Client package init
"""
Bones Client — Data Layer Package
==================================

What:  The client half of the CRUD flow: a keyed query cache that mirrors
       the server's collections, and the API client it fetches through.

Module Inventory:
    - keys.py:  QueryKey, KeyPattern, Affects, InvalidationRules
    - cache.py: QueryClient (coalescing, stale-while-revalidate, two-phase
                mutations, optimistic updates, subscriptions)
    - api.py:   UsersApiClient (httpx + tenacity)
    - users.py: users key names, invalidation rules, UsersDataLayer facade

This package depends on the server only through the wire contract; it
never imports the store or the service.
"""
