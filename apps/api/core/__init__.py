"""Configuration, logging and error handling for the helpdesk API."""
