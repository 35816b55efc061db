"""Core business logic.

Modules:
- directory: institutes and students by wallet address
- certificates: issuance and approval
- access: time-bounded viewer grants and access logs
- transfers: institute transfer workflow
- notifications: change feed and refresh tracking
- content_store: content-addressed file hosting
- container: wiring of stores and services
"""

__all__ = [
    "access",
    "addresses",
    "certificates",
    "container",
    "content_store",
    "directory",
    "models",
    "notifications",
    "retry",
    "transfers",
]
