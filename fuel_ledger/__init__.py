"""Fuel stock ledger and revenue monitoring backend."""
