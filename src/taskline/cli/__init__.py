"""
Console driver for the sync engine.

- bootstrap: composition root (settings, store, gate, transport, api, shell)
- commands: slash-command registry (/tasks, /open, /chat, ...)
- main: entrypoint, logging setup and async REPL
"""
