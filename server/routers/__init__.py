"""HTTP routers for the Five Crowns server."""
