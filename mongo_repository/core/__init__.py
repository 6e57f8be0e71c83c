"""
Core infrastructure: configuration, client management, errors,
cancellation and observability.
"""
