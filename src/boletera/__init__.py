"""Event ticketing for Django."""
