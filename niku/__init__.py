"""Peer-to-peer file and folder sharing, with a command line client and a discovery backend."""

__version__ = "0.1.0"