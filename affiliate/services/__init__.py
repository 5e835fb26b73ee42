"""
Service layer.

Business logic on top of the repositories. Services receive an explicit
AsyncSession and, optionally, injected repositories.
"""
