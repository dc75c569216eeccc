"""HTTP routers for the Nekovibe API."""
