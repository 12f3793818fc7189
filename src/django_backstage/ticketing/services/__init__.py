"""Service layer for ticketing: registration, payment verification, expiry and refunds."""
