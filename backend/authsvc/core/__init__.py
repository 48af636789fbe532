"""Cross-cutting infrastructure: config, extensions, logging, errors."""
