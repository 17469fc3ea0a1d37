"""Configuration, storage, enumerations and milestone registry."""
