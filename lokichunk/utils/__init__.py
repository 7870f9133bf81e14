"""Small helpers shared by the decoder and the report."""
