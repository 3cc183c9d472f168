"""
Services for the advisory response pipeline
"""
