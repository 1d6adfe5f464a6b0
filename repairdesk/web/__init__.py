"""HTTP adapter for RepairDesk."""
