"""Modular routers for the RepairDesk web application."""
