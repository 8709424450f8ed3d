"""Business logic services.

Service functions take the database session first and are called by route
handlers. `users` and `chats` are the only modules issuing SQL; the
send_message modules orchestrate a message exchange on top of them.
"""
