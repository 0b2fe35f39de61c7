"""
Time-of-day traffic aggregation for bike-share stations.
"""
