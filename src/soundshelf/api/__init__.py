"""HTTP API of SoundShelf.

Structure:
- routers/: endpoints (auth, users, songs, health)
- schemas/: Pydantic request/response models
- dependencies.py: dependency injection and the auth chain
- exception_handlers.py: global error handlers
"""
