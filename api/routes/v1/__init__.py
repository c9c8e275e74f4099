"""api/routes/v1/ -- Version 1 route modules, one per component."""
