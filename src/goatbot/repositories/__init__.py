"""Table-level repositories; each takes an open aiosqlite connection per call."""
