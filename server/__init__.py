"""HTTP search surface for DocScout."""
