"""
Session subsystem.

- gate.py: SessionGate (token presence + unauthorized broadcast)
- store.py: credential storage (JSON file, in-memory)
"""
