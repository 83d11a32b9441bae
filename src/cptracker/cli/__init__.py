"""Command-line interface (``cptrack``)."""
