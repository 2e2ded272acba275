"""
Services: backend client and domain services.
"""
