"""REST API for the machine-program backup engine."""
