"""
ReviewHub backend: search, filter and analytics over scraped product reviews
"""
__version__ = '0.3.0'
