"""
Application constants and metadata.
"""

# Application info
APP_NAME = "NVIDIA GPU Exporter"
APP_VERSION = "0.1.0"

# Metric naming
NAMESPACE = "nvidia"
UNAVAILABLE_VERSION = "unavailable"

# Default values
DEFAULT_LISTEN_ADDRESS = "0.0.0.0:9445"
DEFAULT_TELEMETRY_PATH = "/metrics"
DEFAULT_LOG_FILE = "/var/log/nvidia-gpu-exporter/nvidia-gpu-exporter.log"

# Exposition format
CONTENT_TYPE = "text/plain; version=0.0.4"
