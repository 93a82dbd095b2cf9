"""Auth building blocks: password hashing, tokens, session store, refresh rotation, access middleware."""
