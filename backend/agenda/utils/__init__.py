"""Small helpers shared by the routers and the application factory."""
