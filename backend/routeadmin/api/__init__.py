"""HTTP routers for the route admin API."""
