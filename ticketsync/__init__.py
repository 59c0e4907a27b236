"""
AI·GOTCHA ticket sync: customer chat and agent console sessions over a
realtime database
"""
__version__ = "1.0.0"
