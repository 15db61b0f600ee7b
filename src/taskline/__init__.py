"""
taskline: async client for a task-tracking and messaging backend.

Packages:
- core: models, ports, app lifecycle
- session: session gate (token state + unauthorized broadcast)
- api: HTTP transport, authenticated API client, error taxonomy
- sync: response normalization, optimistic mutations, adaptive polling
- views: view controllers (task board, contacts, conversation, app shell)
- cli: composition root and console driver
"""

__version__ = "0.3.0"
