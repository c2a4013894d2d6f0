"""Cookie codec, secret storage, errors and logging."""
