"""
Configuration for the rebalancer.
"""
