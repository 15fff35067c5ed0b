"""Pure domain helpers: typed records, sanitizing, key derivation, value rules."""
