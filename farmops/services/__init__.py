"""Business services for recurring task templates and their instances."""
