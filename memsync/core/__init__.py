"""MemSync core: error taxonomy and record models."""
