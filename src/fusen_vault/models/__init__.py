"""Domain models and planned effects for the Fusen vault engine."""
