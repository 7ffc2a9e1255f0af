"""Service layer for the Fusen vault engine."""
