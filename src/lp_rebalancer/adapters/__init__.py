"""
Collaborator implementations.
"""
