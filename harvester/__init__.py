"""
harvester: resumable, concurrent batch fetching of URI lists into one CSV file.
"""

__version__ = "0.1.0"
