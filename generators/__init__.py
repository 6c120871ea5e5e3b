"""Demo seed-data generators."""
