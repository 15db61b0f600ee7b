"""
Backend access.

- errors.py: error taxonomy (precondition / authorization / application / transport)
- transport.py: httpx-backed HttpTransport
- client.py: authenticated ApiClient with one method per endpoint
"""
