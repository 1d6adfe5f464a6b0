"""RepairDesk - tenant-scoped repair shop records with soft delete and restore."""

__version__ = "0.1.0"
