"""
Client for the Tello drone's binary UDP protocol.

Frames and checks packets, decodes telemetry, runs the connect and
command-mode handshakes with acknowledged commands, integrates odometry
from state lines and streams the RC vector at a fixed cadence.
"""

__version__ = "0.1.0"
