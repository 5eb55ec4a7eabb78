"""
Docker Image Cleaner - Classify local Docker images as keep or delete and remove the safe ones.
"""

__version__ = "4.1.0"
__author__ = "Docker Image Cleaner"
__description__ = "Safe Docker image cleanup driven by image ancestry, container usage and age"
