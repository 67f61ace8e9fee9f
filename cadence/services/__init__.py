"""Service layer composing Cadence data sources and stores."""
