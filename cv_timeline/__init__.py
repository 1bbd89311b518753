"""
CV Timeline Pipeline.

Turns loosely-structured CV data into a validated, storage-safe career
timeline and persists it per job.
"""

__version__ = "2.1.0"
