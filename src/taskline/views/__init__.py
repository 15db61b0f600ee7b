"""
View controllers.

Plain state holders driven by the sync core; rendering is someone else's job.

- task_board.py: task list, detail, status/steps/comments/uploads, task creation
- contacts.py: contact list with unread counts, new-chat user picker
- conversation.py: one chat thread with send
- shell.py: navigation root and forced-logout handling
"""
