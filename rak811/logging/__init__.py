"""Communication logging package.

Records AT command traffic, device events and serial port events between
the driver and a RAK811 module for debugging and field troubleshooting.
"""

from rak811.logging.log_models import LogEntry
from rak811.logging.file_handler import FileHandler
from rak811.logging.communication_logger import CommunicationLogger

__all__ = ['LogEntry', 'FileHandler', 'CommunicationLogger']
