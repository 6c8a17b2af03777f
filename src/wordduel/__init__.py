"""WordDuel backend API."""
