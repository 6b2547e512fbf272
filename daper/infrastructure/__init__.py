"""Infrastructure - settings, database, submission locks, quota accounting"""
