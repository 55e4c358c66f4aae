"""Authentication helpers; sign-in itself is handled by Firebase Auth."""
