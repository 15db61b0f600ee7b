"""
Core types shared by every layer.

Components:
- models.py: canonical records (Task, Contact, Message, ...)
- ports.py: Protocols for transport, session storage and user notification
- lifecycle.py: foreground/background publisher
"""
