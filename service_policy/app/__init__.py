"""
Policy service application package.
"""
