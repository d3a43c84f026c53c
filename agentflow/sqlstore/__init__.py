"""SQLite-backed storage for flows, runs and run events."""