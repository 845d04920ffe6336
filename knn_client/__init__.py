"""
Command-line client for the KNN classification service
"""
