"""Keep local media libraries synchronized with remote channel catalogs."""
