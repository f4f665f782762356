"""Domain layer: values, events, ports and errors."""
