"""
Infrastructure Module

Key/value backends shared by the response cache and the rate limiter.
"""
