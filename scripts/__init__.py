"""
Scripts Module

Utility scripts for database setup.

Available scripts:
    - seed_data.py: Creates a demo project with the default workflow
    
Usage:
    python -m scripts.seed_data
"""
