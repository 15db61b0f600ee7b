# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real tokens. Use:
- .env (local, gitignored)
- TASKLINE_TOKEN only for throwaway sessions; /login stores the token under the data dir

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKLINE_APP_NAME": "App display name (default: taskline).",
    "TASKLINE_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Backend
    "TASKLINE_API_BASE_URL": "Backend origin (default: https://efetosun.com).",
    "TASKLINE_TOKEN": "Optional bearer token; overrides the stored session at startup.",
    "TASKLINE_CONNECT_TIMEOUT_SECONDS": "TCP/TLS connect timeout (default: 5).",
    "TASKLINE_REQUEST_TIMEOUT_SECONDS": "Read/write timeout per request (default: 15, never below connect).",
    # Polling
    "TASKLINE_TASK_POLL_SECONDS": "Task board poll interval (default: 5).",
    "TASKLINE_CONTACT_POLL_SECONDS": "Contact list poll interval (default: 5).",
    "TASKLINE_CONVERSATION_POLL_SECONDS": "Open chat poll interval (default: 2.5).",
    "TASKLINE_CONVERSATION_LIMIT": "Messages fetched per conversation poll (default: 200).",
    # Paths (gitignored)
    "TASKLINE_DATA_DIR": "Local data directory, also used for logs (default: .local/taskline).",
    "TASKLINE_SESSION_PATH": "Credential JSON path (default: <data_dir>/session.json).",
}
