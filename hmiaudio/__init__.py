"""Alarm filters, tag and alarm contexts, and asynchronous actions for HMI audio servers."""

__version__ = "0.1.0"