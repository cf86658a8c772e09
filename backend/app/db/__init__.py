"""
Database module for PetConnect

Contains reference data seeding.
"""
from app.db.seed_data import seed_all, seed_reference_data

__all__ = ["seed_all", "seed_reference_data"]
