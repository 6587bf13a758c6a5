"""Transport layer."""

from .rfcomm import RfcommTransport, open_rfcomm
