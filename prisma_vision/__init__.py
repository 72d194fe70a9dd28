"""
PRISMA Vision
Reads a candlestick chart from screen frames and classifies CALL/PUT signals.
"""

__version__ = "0.1.0"
