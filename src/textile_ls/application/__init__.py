"""Language features built on the domain ports."""
