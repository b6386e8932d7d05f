"""
Satisfactory dedicated server Prometheus exporter
Polls the server HTTPS API and republishes its state as gauges
"""

__version__ = "1.0.0"
