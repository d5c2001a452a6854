"""
Persisted plan selection and monitor settings.
"""
