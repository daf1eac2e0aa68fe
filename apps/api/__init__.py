"""Helpdesk ticket tracker API."""
