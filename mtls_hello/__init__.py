"""
Mutual-TLS hello-world server and client.
"""

__version__ = "0.1.0"
