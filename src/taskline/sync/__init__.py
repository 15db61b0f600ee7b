"""
Synchronization core.

Components:
- normalize.py: pure mapping of loosely-typed payloads onto canonical records
- optimistic.py: single-flight optimistic mutations with snapshot rollback
- poller.py: adaptive, lifecycle-aware polling state machine
"""
