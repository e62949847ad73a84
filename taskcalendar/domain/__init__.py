"""Pure calendar domain: models, recurrence, classification, filtering and state."""
