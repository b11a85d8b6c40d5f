"""Azure Dao: an AI-narrated cultivation role-playing game engine."""
