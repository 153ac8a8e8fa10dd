"""RadRVU: レントゲン・CT・MRI等の読影ワークリストをRVUに換算するツール"""

__version__ = "0.1.0"
