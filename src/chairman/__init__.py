"""chairman - temperature driven fan control for X9 based Supermicro boards"""

__version__ = "0.1.0"
