"""Infrastructure - SQLite access and schema"""
