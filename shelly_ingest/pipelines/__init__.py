"""Reading extraction, identity resolution and persistence."""
