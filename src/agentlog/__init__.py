"""
agentlog - session log ingestion and live streaming for coding agents.
"""

__version__ = "0.1.0"
