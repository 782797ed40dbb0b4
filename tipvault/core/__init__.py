"""Fee engine, merchant accounts and their collaborators."""
