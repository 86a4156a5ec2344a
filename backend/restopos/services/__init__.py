"""
Transaction core. Every function takes an open session as its first
argument and never commits; callers wrap it in ``Database.unit_of_work()``.
"""
