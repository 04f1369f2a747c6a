"""HTTP surface: FastAPI dependencies and the routers that use them."""
