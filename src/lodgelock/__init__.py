"""Lodgelock: pair a signer with an approver device through a relay mailbox."""

__version__ = "0.1.0"
