"""API layer for the seating engine."""
