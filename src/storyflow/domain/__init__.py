"""Domain models and pure rules for story playthroughs."""
