"""Configuration constants for the Tello drone client."""

from dataclasses import dataclass


@dataclass
class Config:
    """Configuration for the Tello drone client."""

    # Network Settings
    drone_host: str = "192.168.10.1"  # Drone access-point address
    command_port: int = 8889  # Remote command port
    local_command_port: int = 8889  # Local port the command socket binds to
    state_port: int = 8890  # Command-mode state lines
    video_port: int = 11111  # Local port announced in conn_req
    bind_host: str = "0.0.0.0"
    recv_buffer_size: int = 4096

    # Transmit Cadence
    tick_interval_s: float = 0.05  # 20 Hz RC transmission
    key_frame_interval_s: float = 1.0  # Request SPS/PPS once per second

    # Command Acknowledgement
    ack_timeout_s: float = 3.0  # Resend after this long without an ack
    max_retries: int = 2  # Resends before giving up
    strict_sequence_match: bool = False  # Require echoed sequence numbers

    # Telemetry
    status_query_after: int = 3  # Flight-data messages before default queries
    default_video_bitrate: int = 4
    default_exposure: int = 2

    # Video
    video_packet_size: int = 1460  # Full-size command-mode video chunk

    # Delivery Channels
    channel_capacity: int = 256  # Items buffered before dropping the oldest


# Default configuration instance
default_config = Config()
