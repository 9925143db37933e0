"""Pure domain logic: records, normalization, validation, repair and reconciliation."""
