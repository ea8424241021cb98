"""Services built on the seating engine."""
