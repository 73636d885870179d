"""
bridgewatch - cross-chain bridge progress tracker

Immutable step/stage progress for NFT bridging attempts, and an async
monitor that polls remote cast operations through to completion.
"""

__version__ = "0.1.0"
