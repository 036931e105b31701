"""
Bones Backend — Application Package Initializer
================================================

What: Marks the `bones` directory as a Python package.
Why:  Enables module imports like `from bones.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by pytest and uvicorn.

Architecture Note:
    The package holds both halves of the CRUD flow:

    ┌─────────────────────────────────────┐
    │       Client (Query Cache Layer)    │  ← bones.client: cache, keys, API client
    ├─────────────────── HTTP ────────────┤
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Validation, error taxonomy
    ├─────────────────────────────────────┤
    │     Models & Schemas (Data)         │  ← Dataclass records + Pydantic contracts
    ├─────────────────────────────────────┤
    │        Store (In-Memory)            │  ← Lock-guarded collection
    └─────────────────────────────────────┘

    The client layer never imports the service or the store; it only knows
    the wire contract (JSON bodies and error descriptors).
"""

__version__ = "1.0.0"
