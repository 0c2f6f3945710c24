"""
Groups feature module.

Groups, group types, group roles and memberships read by the permission
resolver.
"""
